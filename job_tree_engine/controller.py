"""
JobsTreeController - loads a lazily materialized job tree from the job query services.

Every user intent (grouping, expansion, pagination, filters, sort, load more)
updates an immutable ``TableState`` and runs one reconciliation pass. A pass
compares the new state against the snapshot of the previous pass, decides on at
most one fetch, and merges its result into the forest.
"""
import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .columns import (
    ColumnSpec,
    DEFAULT_COLUMN_SPECS,
    DEFAULT_GROUPING,
    aggregatable_column_keys,
    ensure_columns_displayed,
    text_search_column_keys,
)
from .config import JobTreeConfig, get_config
from .errors import FetchFailed, StaleResultDiscarded
from .filters import (
    ColumnFilter,
    FetchRowRequest,
    convert_column_filters_to_filters,
    convert_row_parts_to_filters,
    fetch_job_groups,
    fetch_jobs,
)
from .row_id import JOB_ROW_TYPE, RowId, RowIdInfo, from_row_id
from .selection import SelectionState
from .services.base import GetJobsService, GroupJobsService
from .tree import ExpansionState, find_row, merge_sub_rows, update_group_row, visible_rows
from .types.job_models import DEFAULT_JOB_ORDER, JobOrder
from .types.rows import JobTableRow, groups_to_rows, is_group_row, jobs_to_rows

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Something went wrong while loading jobs, data may be incomplete"


@dataclass(frozen=True)
class PaginationState:
    page_index: int = 0
    page_size: int = 30


@dataclass(frozen=True)
class LoadMoreRequest:
    row_id: RowId
    skip: int


@dataclass(frozen=True)
class TableState:
    """Snapshot of everything that decides what the tree has to fetch."""
    grouping: Tuple[str, ...] = ()
    expansion: ExpansionState = field(default_factory=ExpansionState)
    pagination: PaginationState = field(default_factory=PaginationState)
    column_filters: Tuple[ColumnFilter, ...] = ()
    sort: JobOrder = DEFAULT_JOB_ORDER
    load_more: Optional[LoadMoreRequest] = None

    def query_key(self) -> Tuple[Any, ...]:
        """The part of the state that defines the root rows."""
        return (self.grouping, self.pagination, self.column_filters, self.sort)


@dataclass(frozen=True)
class FetchPlan:
    """A single fetch: the root page, or the children of one group row."""
    target: Optional[RowIdInfo]
    row_request: FetchRowRequest
    grouped_column: Optional[str]  # None for a job-level fetch
    append: bool = False

    @property
    def location(self) -> List[RowId]:
        return self.target.path_from_root if self.target is not None else []

    @property
    def is_root(self) -> bool:
        return self.target is None

    @property
    def description(self) -> str:
        kind = f"groups of {self.grouped_column}" if self.grouped_column else "jobs"
        where = self.target.row_id if self.target is not None else "root"
        return f"{kind} under {where} (skip={self.row_request.skip}, take={self.row_request.take})"


def plan_for_target(
    state: TableState,
    target: Optional[RowIdInfo],
    substring_columns: Iterable[str] = (),
) -> Optional[FetchPlan]:
    """Build the fetch needed to load the children of ``target`` (or the root page)."""
    grouping_level = len(state.grouping)
    expanded_level = target.depth if target is not None else 0

    if target is not None and (
        expanded_level > grouping_level or target.parts_path[-1].type == JOB_ROW_TYPE
    ):
        logger.warning("Row %s cannot have children with grouping %s", target.row_id, list(state.grouping))
        return None

    load_more = state.load_more
    append = target is not None and load_more is not None and load_more.row_id == target.row_id
    page_size = state.pagination.page_size
    if target is None:
        skip = state.pagination.page_index * page_size
    else:
        skip = load_more.skip if append else 0

    filters = convert_row_parts_to_filters(target.parts_path if target is not None else [])
    filters += convert_column_filters_to_filters(state.column_filters, substring_columns)
    row_request = FetchRowRequest(filters=filters, skip=skip, take=page_size, order=state.sort)

    grouped_column = None if expanded_level == grouping_level else state.grouping[expanded_level]
    return FetchPlan(target=target, row_request=row_request, grouped_column=grouped_column, append=append)


def plan_fetch(
    previous: Optional[TableState],
    current: TableState,
    substring_columns: Iterable[str] = (),
) -> Optional[FetchPlan]:
    """Decide which single fetch, if any, moves the tree from ``previous`` to ``current``."""
    if previous is None:
        return plan_for_target(current, None, substring_columns)

    query_unchanged = previous.query_key() == current.query_key()
    expansion_unchanged = previous.expansion == current.expansion
    no_sub_rows_to_load_more = current.load_more is None

    if query_unchanged and expansion_unchanged and no_sub_rows_to_load_more:
        logger.debug("Not fetching any data as no relevant state has changed")
        return None

    if not query_unchanged:
        # Root rows are always rebuilt from scratch
        return plan_for_target(current, None, substring_columns)

    newly_expanded, newly_collapsed = current.expansion.diff(previous.expansion)
    if no_sub_rows_to_load_more and not newly_expanded and newly_collapsed:
        logger.debug("Not fetching new data since we're only collapsing")
        return None

    rows_needing_sub_rows = ([current.load_more.row_id] if current.load_more else []) + newly_expanded
    if len(rows_needing_sub_rows) > 1:
        logger.warning(
            "More than one row needing sub rows fetched, only loading %s: %s",
            rows_needing_sub_rows[0], rows_needing_sub_rows,
        )
    if not rows_needing_sub_rows:
        return None

    return plan_for_target(current, from_row_id(rows_needing_sub_rows[0]), substring_columns)


class JobsTreeController:
    """
    Owns the forest of job rows and every piece of state that shapes it.

    Intents are coroutines; each one runs a reconciliation pass before returning.
    Passes may overlap: results whose triggering state no longer matches the
    current state are discarded instead of merged.
    """

    def __init__(
        self,
        get_jobs_service: GetJobsService,
        group_jobs_service: GroupJobsService,
        config: Optional[JobTreeConfig] = None,
        columns: Optional[Sequence[ColumnSpec]] = None,
        grouping: Optional[Sequence[str]] = None,
    ):
        self.config = config or get_config()
        self.get_jobs_service = get_jobs_service
        self.group_jobs_service = group_jobs_service
        self.columns: List[ColumnSpec] = list(columns or DEFAULT_COLUMN_SPECS)

        grouping = tuple(grouping if grouping is not None else DEFAULT_GROUPING)
        self._check_grouping(grouping)
        self.columns = ensure_columns_displayed(self.columns, list(grouping))
        self.state = TableState(
            grouping=grouping,
            pagination=PaginationState(page_index=0, page_size=self.config.default_page_size),
        )
        self.selection = SelectionState()

        self.forest: List[JobTableRow] = []
        self.total_row_count = 0
        self.page_count = -1
        self.is_loading = True
        self.error: Optional[str] = None

        self._previous: Optional[TableState] = None
        self._in_flight: Dict[asyncio.Task, TableState] = {}
        self._superseded: Set[asyncio.Task] = set()
        # One sub row fetch per group row at a time
        self._sub_row_fetches: Dict[RowId, asyncio.Task] = {}

    # Derived state

    @property
    def grouping(self) -> List[str]:
        return list(self.state.grouping)

    @property
    def expanded_row_ids(self) -> Set[RowId]:
        return set(self.state.expansion.expanded_row_ids)

    @property
    def selected_jobs(self) -> List[str]:
        return self.selection.selected_jobs

    @property
    def pending_fetches(self) -> int:
        return len(self._in_flight)

    def visible_rows(self) -> Iterator[Tuple[int, JobTableRow]]:
        return visible_rows(self.forest, self.state.expansion)

    # Intents

    async def load(self):
        """Initial load of the root page."""
        await self.reconcile()

    async def change_grouping(self, grouping: Sequence[str]):
        grouping = tuple(grouping)
        self._check_grouping(grouping)
        # Expansion and selection refer to row ids of the old grouping
        self.selection.clear()
        self.columns = ensure_columns_displayed(self.columns, list(grouping))
        self.state = replace(self.state, grouping=grouping, expansion=ExpansionState())
        await self.reconcile()

    async def set_grouped_field(self, column_id: str, index: int):
        grouping = list(self.state.grouping)
        if index < 0 or index > len(grouping):
            return
        if index == len(grouping):
            grouping.append(column_id)
        else:
            grouping[index] = column_id
        await self.change_grouping(grouping)

    async def delete_grouped_field(self, index: int):
        grouping = list(self.state.grouping)
        if index < 0 or index >= len(grouping):
            return
        del grouping[index]
        await self.change_grouping(grouping)

    async def change_pagination(self, page_index: Optional[int] = None, page_size: Optional[int] = None):
        pagination = PaginationState(
            page_index=self.state.pagination.page_index if page_index is None else page_index,
            page_size=self.state.pagination.page_size if page_size is None else page_size,
        )
        if pagination.page_index < 0 or pagination.page_size <= 0:
            raise ValueError(f"Invalid pagination {pagination}")
        # Drill-down is not kept across pages
        self.selection.clear()
        self.state = replace(self.state, pagination=pagination, expansion=ExpansionState())
        await self.reconcile()

    async def set_expanded(self, row_id: RowId, expanded: bool = True):
        from_row_id(row_id)  # raises MalformedRowId before the state is touched
        expansion = self.state.expansion
        expansion = expansion.expand(row_id) if expanded else expansion.collapse(row_id)
        self.state = replace(self.state, expansion=expansion)
        await self.reconcile()

    async def toggle_expanded(self, row_id: RowId):
        await self.set_expanded(row_id, not self.state.expansion.is_expanded(row_id))

    async def change_column_filters(self, column_filters: Mapping[str, Any]):
        filters = []
        for column_id in sorted(column_filters):
            value = column_filters[column_id]
            if isinstance(value, (list, tuple, set)):
                if not value:
                    continue
                value = tuple(value)
            elif value is None or value == "":
                continue
            filters.append(ColumnFilter(id=column_id, value=value))
        self.state = replace(
            self.state,
            column_filters=tuple(filters),
            expansion=self._expansion_kept_on_requery(),
        )
        await self.reconcile()

    async def change_sort(self, order: JobOrder):
        self.state = replace(self.state, sort=order, expansion=self._expansion_kept_on_requery())
        await self.reconcile()

    async def load_more_sub_rows(self, row_id: RowId, skip: Optional[int] = None):
        if row_id in self._sub_row_fetches:
            logger.info("Sub rows of %s are already being fetched, ignoring load more", row_id)
            return
        if skip is None:
            row = find_row(self.forest, row_id)
            skip = row.loaded_sub_row_count if is_group_row(row) else 0
        self.state = replace(self.state, load_more=LoadMoreRequest(row_id=row_id, skip=skip))
        await self.reconcile()

    def toggle_selected(self, row_id: RowId) -> bool:
        return self.selection.toggle(row_id)

    # Reconciliation

    async def reconcile(self):
        """Run one pass: plan at most one fetch for the current state and apply it."""
        snapshot = self.state
        plan = plan_fetch(self._previous, snapshot, text_search_column_keys(self.columns))

        self._previous = replace(snapshot, load_more=None)
        if snapshot.load_more is not None:
            self.state = replace(self.state, load_more=None)
        self._cancel_superseded(snapshot)

        if plan is None:
            return
        await self._run_plan(plan, snapshot)

    async def _run_plan(self, plan: FetchPlan, snapshot: TableState):
        logger.info("Fetching %s", plan.description)
        task = asyncio.ensure_future(self._fetch(plan))
        self._in_flight[task] = snapshot
        if plan.target is not None:
            self._sub_row_fetches[plan.target.row_id] = task
        try:
            new_rows, total_count = await task
        except asyncio.CancelledError:
            if task not in self._superseded:
                raise
            self._superseded.discard(task)
            logger.debug("Fetch of %s was superseded", plan.description)
            return
        except FetchFailed as e:
            logger.error("%s", e)
            self.error = LOAD_ERROR_MESSAGE
            if plan.is_root:
                self.is_loading = False
            return
        finally:
            self._in_flight.pop(task, None)
            if plan.target is not None and self._sub_row_fetches.get(plan.target.row_id) is task:
                del self._sub_row_fetches[plan.target.row_id]

        if self._is_stale(plan, snapshot):
            logger.debug("%s", StaleResultDiscarded(f"Discarding stale result for {plan.description}"))
            return

        self._apply(plan, new_rows, total_count)

        if plan.is_root:
            await self._reload_kept_expansion()

    async def _fetch(self, plan: FetchPlan) -> Tuple[List[JobTableRow], int]:
        parent_row_id = plan.target.row_id if plan.target is not None else None
        try:
            if plan.grouped_column is None:
                result = await asyncio.wait_for(
                    fetch_jobs(plan.row_request, self.get_jobs_service),
                    timeout=self.config.query_timeout,
                )
                return jobs_to_rows(result.items, parent_row_id), result.total_items

            result = await asyncio.wait_for(
                fetch_job_groups(
                    plan.row_request,
                    self.group_jobs_service,
                    plan.grouped_column,
                    aggregatable_column_keys(self.columns),
                ),
                timeout=self.config.query_timeout,
            )
            return groups_to_rows(result.groups, parent_row_id, plan.grouped_column), result.total_groups
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise FetchFailed(plan.description, e) from e

    def _apply(self, plan: FetchPlan, new_rows: List[JobTableRow], total_count: int):
        merged = merge_sub_rows(self.forest, new_rows, plan.location, plan.append)
        forest = merged.root_data

        if plan.is_root:
            page_size = plan.row_request.take
            self.total_row_count = total_count
            self.page_count = math.ceil(total_count / page_size)
            self.is_loading = False
        elif merged.parent_row is None:
            # Merge target vanished; keep showing what we have
            self.error = LOAD_ERROR_MESSAGE
            return
        else:
            forest = update_group_row(forest, plan.location, sub_row_count=total_count).root_data
            self.selection.on_rows_merged(merged.parent_row.row_id, new_rows)

        self.forest = list(forest)
        self.error = None

    def _is_stale(self, plan: FetchPlan, snapshot: TableState) -> bool:
        if snapshot.query_key() != self.state.query_key():
            return True
        if plan.target is not None and not self.state.expansion.is_expanded(plan.target.row_id):
            return True
        if plan.append:
            # Appended pages must continue exactly where the loaded children end
            parent = find_row(self.forest, plan.target.row_id)
            if not is_group_row(parent) or parent.loaded_sub_row_count != plan.row_request.skip:
                return True
        return False

    def _cancel_superseded(self, snapshot: TableState):
        """Cancel in-flight fetches issued for a different query."""
        for task, issued_for in list(self._in_flight.items()):
            if issued_for.query_key() != snapshot.query_key() and not task.done():
                self._superseded.add(task)
                task.cancel()

    def _expansion_kept_on_requery(self) -> ExpansionState:
        """A filter or sort change keeps at most one expanded row."""
        if len(self.state.expansion) > 1:
            logger.info("Collapsing %d expanded rows after re-query", len(self.state.expansion))
            return ExpansionState()
        return self.state.expansion

    async def _reload_kept_expansion(self):
        """Reload the children of an expanded row that survived a root reload."""
        for row_id in sorted(self.state.expansion.expanded_row_ids):
            row = find_row(self.forest, row_id)
            if not is_group_row(row):
                logger.info("Expanded row %s no longer exists, collapsing it", row_id)
                self.state = replace(self.state, expansion=self.state.expansion.collapse(row_id))
                continue
            if row.sub_rows is not None:
                continue
            plan = plan_for_target(self.state, from_row_id(row_id), text_search_column_keys(self.columns))
            if plan is not None:
                await self._run_plan(plan, self.state)

    def _check_grouping(self, grouping: Tuple[str, ...]):
        if len(grouping) > self.config.max_grouping_depth:
            raise ValueError(
                f"Grouping {list(grouping)} is deeper than the maximum of {self.config.max_grouping_depth}"
            )
        if len(set(grouping)) != len(grouping):
            raise ValueError(f"Grouping {list(grouping)} contains duplicate columns")
