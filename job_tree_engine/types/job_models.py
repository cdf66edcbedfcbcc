"""
Types for jobs and the queries sent to the job query services.
Plain dataclasses; the REST layer has its own pydantic models.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional, Union


class Match(str, Enum):
    EXACT = "exact"
    ANY_OF = "anyOf"
    CONTAINS = "contains"


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


# Wire field names (column ids) -> Job attribute names
JOB_FIELDS = {
    "jobId": "job_id",
    "queue": "queue",
    "jobSet": "job_set",
    "state": "state",
    "cpu": "cpu",
    "memory": "memory",
    "ephemeralStorage": "ephemeral_storage",
}


@dataclass(frozen=True)
class Job:
    job_id: str
    queue: str
    job_set: str
    state: str
    cpu: int = 0
    memory: str = ""
    ephemeral_storage: str = ""

    def get_field(self, name: str) -> Any:
        return getattr(self, JOB_FIELDS[name])

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Job":
        return Job(**{attr: d[key] for key, attr in JOB_FIELDS.items() if key in d})

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for key, attr in JOB_FIELDS.items()}


@dataclass(frozen=True)
class JobFilter:
    field: str
    value: Union[str, List[str]]
    match: Match = Match.EXACT

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "JobFilter":
        return JobFilter(field=d["field"], value=d["value"], match=Match(d.get("match", Match.EXACT)))

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "value": self.value, "match": self.match.value}


@dataclass(frozen=True)
class JobOrder:
    field: str
    direction: Direction = Direction.ASC

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "JobOrder":
        return JobOrder(field=d["field"], direction=Direction(d.get("direction", Direction.ASC)))

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "direction": self.direction.value}


DEFAULT_JOB_ORDER = JobOrder(field="jobId", direction=Direction.ASC)
DEFAULT_GROUP_ORDER = JobOrder(field="count", direction=Direction.DESC)


@dataclass
class JobGroup:
    name: str
    count: int
    aggregates: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "JobGroup":
        return JobGroup(name=d["name"], count=d["count"], aggregates=dict(d.get("aggregates") or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "count": self.count, "aggregates": self.aggregates}


@dataclass
class ListItemsResult:
    items: List[Job]
    total_items: int


@dataclass
class GroupItemsResult:
    groups: List[JobGroup]
    total_groups: int
