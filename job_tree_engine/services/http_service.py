"""
HttpJobsService - job query services backed by the REST API.

Cancelling the awaiting task aborts the in-flight HTTP request.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from job_tree_engine.services.base import GetJobsService, GroupJobsService
from job_tree_engine.types.job_models import (
    GroupItemsResult,
    Job,
    JobFilter,
    JobGroup,
    JobOrder,
    ListItemsResult,
)

logger = logging.getLogger(__name__)


class HttpJobsService(GetJobsService, GroupJobsService):
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"X-API-Key": api_key} if api_key else {}
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.headers = headers

    @classmethod
    def from_config(cls, config, api_key: Optional[str] = None) -> "HttpJobsService":
        return cls(base_url=config.api_base_url, api_key=api_key, timeout=config.query_timeout)

    async def get_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        skip: int,
        take: int,
    ) -> ListItemsResult:
        data = await self._post("/api/v1/jobs", {
            "filters": [f.to_dict() for f in filters],
            "order": order.to_dict(),
            "skip": skip,
            "take": take,
        })
        return ListItemsResult(
            items=[Job.from_dict(job) for job in data["jobs"]],
            total_items=data["totalJobs"],
        )

    async def group_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        grouped_field: str,
        aggregates: List[str],
        skip: int,
        take: int,
    ) -> GroupItemsResult:
        data = await self._post("/api/v1/jobs/groups", {
            "filters": [f.to_dict() for f in filters],
            "order": order.to_dict(),
            "groupedField": grouped_field,
            "aggregates": list(aggregates),
            "skip": skip,
            "take": take,
        })
        return GroupItemsResult(
            groups=[JobGroup.from_dict(group) for group in data["groups"]],
            total_groups=data["totalGroups"],
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("POST %s %s", path, payload)
        response = await self.client.post(path, json=payload, headers=self.headers)
        response.raise_for_status()
        body = response.json()
        if body.get("status") != "success":
            raise RuntimeError(f"Query service returned {body.get('status')}: {body.get('error')}")
        return body["data"]

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self) -> "HttpJobsService":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
