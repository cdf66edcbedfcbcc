"""
columns.py - Column metadata for the jobs table
"""
from dataclasses import dataclass, replace
from typing import List, Dict, Optional


@dataclass(frozen=True)
class ColumnSpec:
    key: str
    name: str
    selected: bool = True
    is_annotation: bool = False
    groupable: bool = False
    min_size: Optional[int] = 30
    # Scalar filters on this column are sent as substring matches
    text_search: bool = False


COLUMN_SPECS: List[ColumnSpec] = [
    ColumnSpec(key="jobId", name="Job Id", min_size=30),
    ColumnSpec(key="jobSet", name="Job Set", groupable=True, min_size=100, text_search=True),
    ColumnSpec(key="queue", name="Queue", groupable=True, min_size=95),
    ColumnSpec(key="state", name="State", groupable=True, min_size=60),
    ColumnSpec(key="cpu", name="CPU", min_size=60),
    ColumnSpec(key="memory", name="Memory", min_size=70),
    ColumnSpec(key="ephemeralStorage", name="Eph. Storage", min_size=95),
]

COLUMN_SPEC_MAP: Dict[str, ColumnSpec] = {spec.key: spec for spec in COLUMN_SPECS}

DEFAULT_COLUMNS: List[str] = [spec.key for spec in COLUMN_SPECS]

DEFAULT_GROUPING: List[str] = []


def column_spec_for(column_id: str) -> ColumnSpec:
    """Known columns get their spec; anything else is treated as an annotation."""
    spec = COLUMN_SPEC_MAP.get(column_id)
    if spec is not None:
        return spec
    return ColumnSpec(key=column_id, name=column_id.capitalize(), is_annotation=True, groupable=True)


DEFAULT_COLUMN_SPECS: List[ColumnSpec] = [column_spec_for(c) for c in DEFAULT_COLUMNS]


def ensure_columns_displayed(columns: List[ColumnSpec], column_ids: List[str]) -> List[ColumnSpec]:
    """Mark every column in ``column_ids`` as selected, adding specs for unknown ones."""
    wanted = set(column_ids)
    updated = [replace(col, selected=True) if col.key in wanted else col for col in columns]
    known = {col.key for col in columns}
    for column_id in column_ids:
        if column_id not in known:
            updated.append(column_spec_for(column_id))
    return updated


def aggregatable_column_keys(columns: List[ColumnSpec]) -> List[str]:
    return [col.key for col in columns if col.groupable]


def text_search_column_keys(columns: List[ColumnSpec]) -> List[str]:
    return [col.key for col in columns if col.text_search]
