"""
Shared fixtures: an in-memory job query service that records every call.
"""
import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest

from job_tree_engine.config import JobTreeConfig
from job_tree_engine.sample_data import make_test_jobs
from job_tree_engine.services.base import GetJobsService, GroupJobsService
from job_tree_engine.types.job_models import (
    Direction,
    GroupItemsResult,
    JobFilter,
    JobGroup,
    JobOrder,
    ListItemsResult,
    Match,
)


@dataclass
class JobsCall:
    filters: List[JobFilter]
    order: JobOrder
    skip: int
    take: int


@dataclass
class GroupsCall:
    filters: List[JobFilter]
    order: JobOrder
    grouped_field: str
    aggregates: List[str]
    skip: int
    take: int


class FakeJobsService(GetJobsService, GroupJobsService):
    """
    Answers queries from a list of jobs. Set ``gate`` to hold every answer
    until the event is set, ``error`` to make every call fail, or ``on_answer``
    to run a callback once, just before the next answer is returned.
    """

    def __init__(self, jobs):
        self.jobs = list(jobs)
        self.job_calls: List[JobsCall] = []
        self.group_calls: List[GroupsCall] = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None
        self.on_answer: Optional[Callable[[], None]] = None

    @property
    def call_count(self) -> int:
        return len(self.job_calls) + len(self.group_calls)

    async def get_jobs(self, filters, order, skip, take):
        self.job_calls.append(JobsCall(list(filters), order, skip, take))
        await self._wait()
        jobs = sorted(
            self._filtered(filters),
            key=lambda job: (job.get_field(order.field), job.job_id),
            reverse=order.direction == Direction.DESC,
        )
        self._answered()
        return ListItemsResult(items=jobs[skip:skip + take], total_items=len(jobs))

    async def group_jobs(self, filters, order, grouped_field, aggregates, skip, take):
        self.group_calls.append(GroupsCall(list(filters), order, grouped_field, list(aggregates), skip, take))
        await self._wait()
        counts = Counter(str(job.get_field(grouped_field)) for job in self._filtered(filters))
        groups = [JobGroup(name=name, count=count) for name, count in counts.items()]
        if order.field == "count":
            groups.sort(key=lambda g: g.name)
            groups.sort(key=lambda g: g.count, reverse=order.direction == Direction.DESC)
        else:
            groups.sort(key=lambda g: g.name, reverse=order.direction == Direction.DESC)
        self._answered()
        return GroupItemsResult(groups=groups[skip:skip + take], total_groups=len(groups))

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    def _answered(self):
        hook, self.on_answer = self.on_answer, None
        if hook is not None:
            hook()

    def _filtered(self, filters):
        return [job for job in self.jobs if all(self._matches(job, f) for f in filters)]

    @staticmethod
    def _matches(job, f: JobFilter) -> bool:
        actual = str(job.get_field(f.field))
        if f.match == Match.ANY_OF:
            return actual in [str(v) for v in f.value]
        if f.match == Match.CONTAINS:
            return str(f.value) in actual
        return actual == str(f.value)


async def settle(rounds: int = 20):
    """Let pending tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def config() -> JobTreeConfig:
    return JobTreeConfig(default_page_size=30, query_timeout=5.0)


@pytest.fixture
def five_jobs_service() -> FakeJobsService:
    """5 jobs over 2 queues: queue-1 has jobs 0, 2, 4 and queue-2 has jobs 1, 3."""
    return FakeJobsService(make_test_jobs(5, num_queues=2, num_job_sets=2))


@pytest.fixture
def ten_jobs_service() -> FakeJobsService:
    """10 jobs over 2 queues and 4 job sets."""
    return FakeJobsService(make_test_jobs(10, num_queues=2, num_job_sets=4))
