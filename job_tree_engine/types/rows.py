"""
Row entity model for the job tree.

A row is either a leaf ``JobRow`` or a ``JobGroupRow``. Both are frozen;
the merge engine replaces group rows instead of mutating them.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union

from job_tree_engine.row_id import RowId, JOB_ROW_TYPE, to_row_id
from job_tree_engine.types.job_models import Job, JobGroup


@dataclass(frozen=True)
class JobRow:
    row_id: RowId
    job_id: str
    queue: str
    job_set: str
    state: str
    cpu: int
    memory: str
    ephemeral_storage: str

    is_group = False


@dataclass(frozen=True)
class JobGroupRow:
    row_id: RowId
    grouped_field: str
    group_value: str
    job_count: int
    aggregates: Dict[str, Any] = field(default_factory=dict)

    # Number of direct children, set once the group has been expanded
    sub_row_count: Optional[int] = None
    # None until the first page of children has been merged
    sub_rows: Optional[List["JobTableRow"]] = None

    is_group = True

    @property
    def loaded_sub_row_count(self) -> int:
        return len(self.sub_rows) if self.sub_rows is not None else 0

    @property
    def can_load_more(self) -> bool:
        return self.sub_row_count is not None and self.sub_row_count > self.loaded_sub_row_count


JobTableRow = Union[JobRow, JobGroupRow]


def is_group_row(row: Optional[JobTableRow]) -> bool:
    return isinstance(row, JobGroupRow)


def jobs_to_rows(jobs: List[Job], base_row_id: Optional[RowId] = None) -> List[JobRow]:
    return [
        JobRow(
            row_id=to_row_id(JOB_ROW_TYPE, job.job_id, base_row_id),
            job_id=job.job_id,
            queue=job.queue,
            job_set=job.job_set,
            state=job.state,
            cpu=job.cpu,
            memory=job.memory,
            ephemeral_storage=job.ephemeral_storage,
        )
        for job in jobs
    ]


def groups_to_rows(groups: List[JobGroup], base_row_id: Optional[RowId], grouping_field: str) -> List[JobGroupRow]:
    return [
        JobGroupRow(
            row_id=to_row_id(grouping_field, group.name, base_row_id),
            grouped_field=grouping_field,
            group_value=group.name,
            job_count=group.count,
            aggregates=dict(group.aggregates),
        )
        for group in groups
    ]
