"""
rest_api.py - REST API exposing the job query service

POST /api/v1/jobs          -> one page of jobs and the total count
POST /api/v1/jobs/groups   -> one page of groups and the total group count
"""
import logging
from typing import Dict, Any, List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from job_tree_engine.config import JobTreeConfig, get_config
from job_tree_engine.sample_data import make_test_jobs
from job_tree_engine.security import get_api_key
from job_tree_engine.services.base import GetJobsService, GroupJobsService
from job_tree_engine.services.ibis_service import IbisJobsService
from job_tree_engine.types.job_models import (
    DEFAULT_GROUP_ORDER,
    DEFAULT_JOB_ORDER,
    Direction,
    JobFilter,
    JobOrder,
    Match,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class JobFilterModel(BaseModel):
    field: str
    value: Union[str, List[str]]
    match: Match = Match.EXACT

    def to_filter(self) -> JobFilter:
        value = list(self.value) if isinstance(self.value, list) else self.value
        return JobFilter(field=self.field, value=value, match=self.match)


class JobOrderModel(BaseModel):
    field: str
    direction: Direction = Direction.ASC

    def to_order(self) -> JobOrder:
        return JobOrder(field=self.field, direction=self.direction)


class GetJobsRequest(BaseModel):
    """Pydantic model for a job list request"""
    filters: List[JobFilterModel] = []
    order: JobOrderModel = JobOrderModel(field=DEFAULT_JOB_ORDER.field, direction=DEFAULT_JOB_ORDER.direction)
    skip: int = Field(default=0, ge=0)
    take: int = Field(default=100, ge=1, le=1000)


class GroupJobsRequest(BaseModel):
    """Pydantic model for a job grouping request"""
    filters: List[JobFilterModel] = []
    order: JobOrderModel = JobOrderModel(field=DEFAULT_GROUP_ORDER.field, direction=DEFAULT_GROUP_ORDER.direction)
    groupedField: str
    aggregates: List[str] = []
    skip: int = Field(default=0, ge=0)
    take: int = Field(default=100, ge=1, le=1000)


class APIResponse(BaseModel):
    """Base API response model"""
    status: str
    data: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class JobsQueryAPI:
    """REST API over a pair of job query services"""

    def __init__(self, get_jobs_service: GetJobsService, group_jobs_service: Optional[GroupJobsService] = None):
        self.get_jobs_service = get_jobs_service
        self.group_jobs_service = group_jobs_service or get_jobs_service
        self.app = FastAPI(title="Job Tree Query API")
        self._setup_routes()

    def _setup_routes(self):

        @self.app.get("/health")
        async def health_check():
            return {"status": "healthy", "service": "job-tree-engine", "version": "1.0"}

        @self.app.post(f"{API_PREFIX}/jobs", dependencies=[Depends(get_api_key)])
        async def get_jobs_endpoint(request: GetJobsRequest):
            try:
                result = await self.get_jobs_service.get_jobs(
                    [f.to_filter() for f in request.filters],
                    request.order.to_order(),
                    request.skip,
                    request.take,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except Exception as e:
                logger.exception("Failed to list jobs")
                raise HTTPException(status_code=500, detail=str(e))

            return APIResponse(
                status="success",
                data={
                    "jobs": [job.to_dict() for job in result.items],
                    "totalJobs": result.total_items,
                },
                metadata={"skip": request.skip, "take": request.take},
            )

        @self.app.post(f"{API_PREFIX}/jobs/groups", dependencies=[Depends(get_api_key)])
        async def group_jobs_endpoint(request: GroupJobsRequest):
            try:
                result = await self.group_jobs_service.group_jobs(
                    [f.to_filter() for f in request.filters],
                    request.order.to_order(),
                    request.groupedField,
                    request.aggregates,
                    request.skip,
                    request.take,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except Exception as e:
                logger.exception("Failed to group jobs by %s", request.groupedField)
                raise HTTPException(status_code=500, detail=str(e))

            return APIResponse(
                status="success",
                data={
                    "groups": [group.to_dict() for group in result.groups],
                    "totalGroups": result.total_groups,
                },
                metadata={"groupedField": request.groupedField, "skip": request.skip, "take": request.take},
            )

    def get_app(self) -> FastAPI:
        return self.app


def create_jobs_api(config: Optional[JobTreeConfig] = None, sample_jobs: int = 0) -> JobsQueryAPI:
    """Create the API over an Ibis service, optionally seeded with fake jobs."""
    config = config or get_config()
    service = IbisJobsService.from_config(config)
    if sample_jobs:
        service.load_jobs(make_test_jobs(sample_jobs))
    return JobsQueryAPI(service)
