"""
Tree merge engine and expansion state for the lazy job tree.

Pages of rows fetched for one node are merged into the existing forest
copy-on-write: the target group row and each of its ancestors are replaced
by updated copies, everything else is shared with the previous forest.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from job_tree_engine.errors import MergeTargetNotFound
from job_tree_engine.row_id import RowId, from_row_id
from job_tree_engine.types.rows import JobGroupRow, JobTableRow, is_group_row

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpansionState:
    """Set of expanded row ids. Immutable so it can be part of a state snapshot."""
    expanded_row_ids: FrozenSet[RowId] = field(default_factory=frozenset)

    def is_expanded(self, row_id: RowId) -> bool:
        return row_id in self.expanded_row_ids

    def expand(self, row_id: RowId) -> "ExpansionState":
        return ExpansionState(self.expanded_row_ids | {row_id})

    def collapse(self, row_id: RowId) -> "ExpansionState":
        return ExpansionState(self.expanded_row_ids - {row_id})

    def toggle(self, row_id: RowId) -> "ExpansionState":
        return self.collapse(row_id) if self.is_expanded(row_id) else self.expand(row_id)

    def diff(self, previous: Optional["ExpansionState"]) -> Tuple[List[RowId], List[RowId]]:
        """Return (newly expanded, newly collapsed) row ids, each sorted."""
        previous_ids = previous.expanded_row_ids if previous is not None else frozenset()
        added = sorted(self.expanded_row_ids - previous_ids)
        removed = sorted(previous_ids - self.expanded_row_ids)
        return added, removed

    def __len__(self) -> int:
        return len(self.expanded_row_ids)


@dataclass
class MergeResult:
    root_data: List[JobTableRow]
    parent_row: Optional[JobGroupRow] = None


def _apply_at_path(
    rows: Sequence[JobTableRow],
    location: Sequence[RowId],
    depth: int,
    update: Callable[[JobGroupRow], JobGroupRow],
) -> Tuple[List[JobTableRow], JobGroupRow]:
    row_id = location[depth]
    # TODO: index sub rows by row id if fan-out grows beyond a few hundred rows
    for index, row in enumerate(rows):
        if row.row_id == row_id:
            break
    else:
        raise MergeTargetNotFound(list(location), row_id)

    if not is_group_row(row):
        raise MergeTargetNotFound(list(location), row_id)

    if depth == len(location) - 1:
        new_row = update(row)
        updated = new_row
    else:
        children, updated = _apply_at_path(row.sub_rows or [], location, depth + 1, update)
        new_row = replace(row, sub_rows=children)

    new_rows = list(rows)
    new_rows[index] = new_row
    return new_rows, updated


def merge_sub_rows(
    existing_data: List[JobTableRow],
    new_sub_rows: List[JobTableRow],
    location_for_sub_rows: Sequence[RowId],
    append_sub_rows: bool = False,
) -> MergeResult:
    """
    Merge a page of rows into the forest.

    Args:
        existing_data: The current forest. Never mutated.
        new_sub_rows: Rows fetched for the target node.
        location_for_sub_rows: Row ids from the root down to the target group row.
            Empty means the new rows replace the whole forest.
        append_sub_rows: Append to the target's children instead of replacing them.

    Returns:
        A MergeResult whose ``root_data`` is a new forest and ``parent_row`` is the
        updated target. If the target can't be found, the original forest is returned
        and ``parent_row`` is None.
    """
    if not location_for_sub_rows:
        return MergeResult(root_data=new_sub_rows)

    def merge(parent: JobGroupRow) -> JobGroupRow:
        if append_sub_rows:
            return replace(parent, sub_rows=list(parent.sub_rows or []) + list(new_sub_rows))
        return replace(parent, sub_rows=list(new_sub_rows))

    try:
        root_data, parent_row = _apply_at_path(existing_data, location_for_sub_rows, 0, merge)
    except MergeTargetNotFound as e:
        logger.warning("Could not find row to merge with path %s: %s", list(location_for_sub_rows), e)
        return MergeResult(root_data=existing_data)

    return MergeResult(root_data=root_data, parent_row=parent_row)


def update_group_row(
    existing_data: List[JobTableRow],
    location: Sequence[RowId],
    **changes,
) -> MergeResult:
    """Copy-on-write update of fields on the group row at ``location``."""
    if not location:
        return MergeResult(root_data=existing_data)
    try:
        root_data, row = _apply_at_path(existing_data, location, 0, lambda r: replace(r, **changes))
    except MergeTargetNotFound as e:
        logger.warning("Could not update row at path %s: %s", list(location), e)
        return MergeResult(root_data=existing_data)
    return MergeResult(root_data=root_data, parent_row=row)


def find_row(forest: Sequence[JobTableRow], row_id: RowId) -> Optional[JobTableRow]:
    """Locate a row by walking its path from the root."""
    rows: Sequence[JobTableRow] = forest
    found = None
    for ancestor_id in from_row_id(row_id).path_from_root:
        found = next((r for r in rows if r.row_id == ancestor_id), None)
        if found is None:
            return None
        rows = (found.sub_rows or []) if is_group_row(found) else []
    return found


def visible_rows(forest: Sequence[JobTableRow], expansion: ExpansionState) -> Iterator[Tuple[int, JobTableRow]]:
    """Yield (depth, row) for every row a table would show, depth first."""
    stack = [(0, row) for row in reversed(forest)]
    while stack:
        depth, row = stack.pop()
        yield depth, row
        if is_group_row(row) and expansion.is_expanded(row.row_id) and row.sub_rows:
            stack.extend((depth + 1, child) for child in reversed(row.sub_rows))
