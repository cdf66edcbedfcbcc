"""
selection.py - Row selection for the job tree
"""
import logging
from typing import FrozenSet, Iterable, List

from job_tree_engine.row_id import RowId, job_id_from_row_id
from job_tree_engine.types.rows import JobTableRow

logger = logging.getLogger(__name__)


class SelectionState:
    """
    Set of selected row ids, kept independently of the forest.

    Selecting a group only marks the group itself. Children merged under a
    selected group later start out selected.
    """

    def __init__(self, selected: Iterable[RowId] = ()):
        self._selected = set(selected)

    def toggle(self, row_id: RowId) -> bool:
        """Flip selection of exactly this row; returns the new state."""
        if row_id in self._selected:
            self._selected.discard(row_id)
            return False
        self._selected.add(row_id)
        return True

    def select(self, row_id: RowId):
        self._selected.add(row_id)

    def deselect(self, row_id: RowId):
        self._selected.discard(row_id)

    def clear(self):
        self._selected.clear()

    def is_selected(self, row_id: RowId) -> bool:
        return row_id in self._selected

    def on_rows_merged(self, parent_row_id: RowId, new_children: Iterable[JobTableRow]) -> int:
        """Select newly merged children of a selected parent. Returns how many were added."""
        if parent_row_id not in self._selected:
            return 0
        before = len(self._selected)
        self._selected.update(child.row_id for child in new_children)
        added = len(self._selected) - before
        logger.debug("Selected %d new children of %s", added, parent_row_id)
        return added

    @property
    def selected_row_ids(self) -> FrozenSet[RowId]:
        return frozenset(self._selected)

    @property
    def selected_jobs(self) -> List[str]:
        """Job ids of selected leaf rows, sorted."""
        job_ids = (job_id_from_row_id(row_id) for row_id in self._selected)
        return sorted(job_id for job_id in job_ids if job_id is not None)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, row_id: RowId) -> bool:
        return row_id in self._selected
