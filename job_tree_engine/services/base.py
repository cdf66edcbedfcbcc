"""
Interfaces of the remote job query service.

Implementations may be remote (HTTP) or in-process; the tree only ever
talks to these two operations. Cancelling the awaiting task is the abort
signal: implementations should stop work when ``asyncio.CancelledError``
is raised inside them.
"""
from abc import ABC, abstractmethod
from typing import List

from job_tree_engine.types.job_models import JobFilter, JobOrder, ListItemsResult, GroupItemsResult


class GetJobsService(ABC):

    @abstractmethod
    async def get_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        skip: int,
        take: int,
    ) -> ListItemsResult:
        """Return one page of jobs matching ``filters`` and the total match count."""


class GroupJobsService(ABC):

    @abstractmethod
    async def group_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        grouped_field: str,
        aggregates: List[str],
        skip: int,
        take: int,
    ) -> GroupItemsResult:
        """Return one page of groups of ``grouped_field`` and the total group count.

        ``order.field`` is either ``"name"`` (the group value) or ``"count"``.
        """
