"""
Tests for the Ibis-backed job query service (in-memory DuckDB).
"""
import pytest

from job_tree_engine.controller import LOAD_ERROR_MESSAGE, JobsTreeController
from job_tree_engine.config import JobTreeConfig
from job_tree_engine.sample_data import jobs_to_arrow, make_test_jobs
from job_tree_engine.services.ibis_service import IbisJobsService, build_cache
from job_tree_engine.cache.memory_cache import MemoryCache
from job_tree_engine.types.job_models import Direction, JobFilter, JobOrder, Match


@pytest.fixture
def service() -> IbisJobsService:
    """20 jobs over 2 queues and 4 job sets."""
    service = IbisJobsService()
    service.load_jobs(make_test_jobs(20, num_queues=2, num_job_sets=4))
    return service


@pytest.mark.asyncio
async def test_get_jobs_page(service):
    result = await service.get_jobs([], JobOrder("jobId", Direction.ASC), 0, 5)

    assert result.total_items == 20
    assert [job.job_id for job in result.items] == ["0", "1", "10", "11", "12"]
    assert result.items[0].queue == "queue-1"
    assert result.items[0].cpu == 4000


@pytest.mark.asyncio
async def test_get_jobs_skip(service):
    result = await service.get_jobs([], JobOrder("jobId", Direction.DESC), 2, 3)
    assert [job.job_id for job in result.items] == ["7", "6", "5"]


@pytest.mark.asyncio
async def test_get_jobs_exact_filter(service):
    result = await service.get_jobs([JobFilter("queue", "queue-1", Match.EXACT)], JobOrder("jobId"), 0, 100)

    assert result.total_items == 10
    assert all(job.queue == "queue-1" for job in result.items)


@pytest.mark.asyncio
async def test_get_jobs_any_of_filter(service):
    filters = [JobFilter("state", ["Failed", "Queued"], Match.ANY_OF)]
    result = await service.get_jobs(filters, JobOrder("jobId"), 0, 100)

    assert result.total_items == 8
    assert {job.state for job in result.items} == {"Failed", "Queued"}


@pytest.mark.asyncio
async def test_get_jobs_contains_filter(service):
    filters = [JobFilter("jobSet", "set-1", Match.CONTAINS)]
    result = await service.get_jobs(filters, JobOrder("jobId"), 0, 100)

    assert result.total_items == 5
    assert {job.job_set for job in result.items} == {"job-set-1"}


@pytest.mark.asyncio
async def test_get_jobs_combined_filters(service):
    filters = [
        JobFilter("queue", "queue-1", Match.EXACT),
        JobFilter("jobSet", "job-set-3", Match.EXACT),
    ]
    result = await service.get_jobs(filters, JobOrder("jobId"), 0, 100)
    assert sorted(int(job.job_id) for job in result.items) == [2, 6, 10, 14, 18]


@pytest.mark.asyncio
async def test_group_jobs_by_name_with_aggregates(service):
    result = await service.group_jobs([], JobOrder("name", Direction.ASC), "queue", ["cpu", "state", "queue"], 0, 10)

    assert result.total_groups == 2
    assert [(g.name, g.count) for g in result.groups] == [("queue-1", 10), ("queue-2", 10)]
    assert result.groups[0].aggregates == {"cpu": 40000, "state": 3}


@pytest.mark.asyncio
async def test_group_jobs_by_count(service):
    result = await service.group_jobs([], JobOrder("count", Direction.DESC), "state", [], 0, 10)

    assert result.total_groups == 6
    assert [(g.name, g.count) for g in result.groups[:3]] == [("Failed", 4), ("Queued", 4), ("Cancelled", 3)]


@pytest.mark.asyncio
async def test_group_jobs_page(service):
    result = await service.group_jobs([], JobOrder("name", Direction.ASC), "jobSet", [], 1, 2)

    assert result.total_groups == 4
    assert [g.name for g in result.groups] == ["job-set-2", "job-set-3"]


@pytest.mark.asyncio
async def test_group_jobs_filtered(service):
    filters = [JobFilter("queue", "queue-2", Match.EXACT)]
    result = await service.group_jobs(filters, JobOrder("name", Direction.DESC), "jobSet", [], 0, 10)

    assert [(g.name, g.count) for g in result.groups] == [("job-set-4", 5), ("job-set-2", 5)]


@pytest.mark.asyncio
async def test_group_jobs_unknown_field(service):
    with pytest.raises(ValueError):
        await service.group_jobs([], JobOrder("name"), "nope", [], 0, 10)


@pytest.mark.asyncio
async def test_unknown_filter_field_is_rejected(service):
    with pytest.raises(ValueError):
        await service.get_jobs([JobFilter("team", "platform")], JobOrder("jobId"), 0, 1)
    with pytest.raises(ValueError):
        await service.group_jobs([JobFilter("team", "platform")], JobOrder("name"), "queue", [], 0, 10)


@pytest.mark.asyncio
async def test_controller_reports_filter_on_missing_column(service):
    controller = JobsTreeController(service, service, config=JobTreeConfig(), grouping=["queue"])
    await controller.load()
    forest = controller.forest

    await controller.change_column_filters({"team": "platform"})

    assert controller.error == LOAD_ERROR_MESSAGE
    assert controller.forest is forest


@pytest.mark.asyncio
async def test_memory_cache_hits():
    service = IbisJobsService(cache="memory", cache_ttl=60)
    service.load_jobs(jobs_to_arrow(make_test_jobs(5)))

    first = await service.get_jobs([], JobOrder("jobId"), 0, 5)
    second = await service.get_jobs([], JobOrder("jobId"), 0, 5)

    assert first == second
    assert service.get_stats() == {"queries": 1, "cache_hits": 1}

    # Reloading data drops cached pages
    service.load_jobs(make_test_jobs(3))
    third = await service.get_jobs([], JobOrder("jobId"), 0, 5)
    assert third.total_items == 3


def test_build_cache():
    assert isinstance(build_cache("memory", 5), MemoryCache)
    assert build_cache("none", 5) is None
    cache = MemoryCache()
    assert build_cache(cache, 5) is cache
    with pytest.raises(ValueError):
        build_cache("bogus", 5)


@pytest.mark.asyncio
async def test_controller_over_ibis(service):
    controller = JobsTreeController(service, service, config=JobTreeConfig(default_page_size=30), grouping=["queue", "state"])
    await controller.load()
    await controller.set_expanded("queue:queue-2")
    await controller.set_expanded("queue:queue-2>state:Queued")

    states = controller.forest[1].sub_rows
    assert [(row.group_value, row.job_count) for row in states] == [
        ("Cancelled", 3), ("Queued", 4), ("Running", 3),
    ]
    jobs = states[1].sub_rows
    assert sorted(int(row.job_id) for row in jobs) == [1, 7, 13, 19]
    assert jobs[0].row_id.startswith("queue:queue-2>state:Queued>job:")
