"""
filters.py - Translate tree paths and column filters into query service requests
"""
import logging
from dataclasses import dataclass, field
from typing import List, Any, Iterable

from job_tree_engine.row_id import RowIdParts
from job_tree_engine.services.base import GetJobsService, GroupJobsService
from job_tree_engine.types.job_models import (
    Direction,
    GroupItemsResult,
    JobFilter,
    JobOrder,
    ListItemsResult,
    Match,
    DEFAULT_JOB_ORDER,
)

logger = logging.getLogger(__name__)

GROUP_NAME_FIELD = "name"


@dataclass(frozen=True)
class ColumnFilter:
    """A filter set on a table column; a list value is a multi-select."""
    id: str
    value: Any


@dataclass(frozen=True)
class FetchRowRequest:
    filters: List[JobFilter] = field(default_factory=list)
    skip: int = 0
    take: int = 30
    order: JobOrder = DEFAULT_JOB_ORDER


def convert_row_parts_to_filters(expanded_row_id_parts: Iterable[RowIdParts]) -> List[JobFilter]:
    return [JobFilter(field=part.type, value=part.value, match=Match.EXACT) for part in expanded_row_id_parts]


def convert_column_filters_to_filters(
    column_filters: Iterable[ColumnFilter],
    substring_columns: Iterable[str] = (),
) -> List[JobFilter]:
    """Lists become any-of predicates; scalars are exact unless the column is text-searched."""
    substring_columns = set(substring_columns)
    filters = []
    for column_filter in column_filters:
        value = column_filter.value
        if isinstance(value, (list, tuple, set)):
            filters.append(JobFilter(field=column_filter.id, value=list(value), match=Match.ANY_OF))
        else:
            match = Match.CONTAINS if column_filter.id in substring_columns else Match.EXACT
            filters.append(JobFilter(field=column_filter.id, value=value, match=match))
    return filters


def group_order_for(order: JobOrder, grouped_column: str) -> JobOrder:
    """Groups are always sorted by name; the direction only follows the
    requested order when the table is sorted by the grouped column itself."""
    direction = order.direction if order.field == grouped_column else Direction.ASC
    return JobOrder(field=GROUP_NAME_FIELD, direction=direction)


async def fetch_jobs(row_request: FetchRowRequest, get_jobs_service: GetJobsService) -> ListItemsResult:
    return await get_jobs_service.get_jobs(
        row_request.filters, row_request.order, row_request.skip, row_request.take
    )


async def fetch_job_groups(
    row_request: FetchRowRequest,
    group_jobs_service: GroupJobsService,
    grouped_column: str,
    columns_to_aggregate: List[str],
) -> GroupItemsResult:
    order = group_order_for(row_request.order, grouped_column)
    logger.debug("Fetching groups of %s ordered by %s", grouped_column, order)
    return await group_jobs_service.group_jobs(
        row_request.filters,
        order,
        grouped_column,
        columns_to_aggregate,
        row_request.skip,
        row_request.take,
    )
