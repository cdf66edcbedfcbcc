"""
row_id.py - Path-encoded row identifiers

A row id is one or more ``type:value`` segments joined by ``>``, for example
``"queue:queue-2>jobSet:job-set-2>job:0"``. Each segment is one level of the
path from the root of the tree to the row.
"""
from dataclasses import dataclass
from typing import List, Optional

from job_tree_engine.errors import MalformedRowId

RowId = str

SEGMENT_SEPARATOR = ">"
TYPE_SEPARATOR = ":"
JOB_ROW_TYPE = "job"


@dataclass(frozen=True)
class RowIdParts:
    type: str
    value: str


@dataclass(frozen=True)
class RowIdInfo:
    row_id: RowId

    # E.g. [RowIdParts("queue", "queue-2"), RowIdParts("jobSet", "job-set-2")]
    parts_path: List[RowIdParts]

    # E.g. ["queue:queue-2", "queue:queue-2>jobSet:job-set-2"]
    path_from_root: List[RowId]

    @property
    def depth(self) -> int:
        return len(self.parts_path)

    @property
    def parent_path(self) -> List[RowId]:
        return self.path_from_root[:-1]


def to_row_id(type: str, value: str, parent_row_id: Optional[RowId] = None) -> RowId:
    """Build a row id segment, nested under ``parent_row_id`` if given.

    Separator characters inside ``type`` or ``value`` are not escaped.
    """
    segment = f"{type}{TYPE_SEPARATOR}{value}"
    return f"{parent_row_id}{SEGMENT_SEPARATOR}{segment}" if parent_row_id else segment


def from_row_id(row_id: RowId) -> RowIdInfo:
    """Decode a row id into its parts and the ids of all of its ancestors."""
    if not row_id:
        raise MalformedRowId(row_id, "empty row id")

    parts_path = []
    for segment in row_id.split(SEGMENT_SEPARATOR):
        pieces = segment.split(TYPE_SEPARATOR)
        if len(pieces) != 2:
            raise MalformedRowId(row_id, f"segment {segment!r} is not of the form type:value")
        type_, value = pieces
        if not type_:
            raise MalformedRowId(row_id, f"segment {segment!r} has no type")
        parts_path.append(RowIdParts(type=type_, value=value))

    path_from_root = []
    last_row_id = None
    for part in parts_path:
        last_row_id = to_row_id(part.type, part.value, last_row_id)
        path_from_root.append(last_row_id)

    return RowIdInfo(row_id=row_id, parts_path=parts_path, path_from_root=path_from_root)


def job_id_from_row_id(row_id: RowId) -> Optional[str]:
    """Return the job id in a row id's path, or None for group rows."""
    for part in from_row_id(row_id).parts_path:
        if part.type == JOB_ROW_TYPE:
            return part.value
    return None
