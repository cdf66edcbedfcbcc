"""
IbisJobsService - in-process job query service over an Ibis table.

Implements both query operations against any Ibis backend (DuckDB by default).
Queries run in the default executor; database access is serialized with a lock
since a single connection is shared.
"""
import asyncio
import functools
import hashlib
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

import ibis
import pyarrow as pa
from ibis import BaseBackend as IbisBaseBackend
from ibis.expr.api import Table as IbisTable, Expr as IbisExpr

from job_tree_engine.cache.memory_cache import MemoryCache
from job_tree_engine.services.base import GetJobsService, GroupJobsService
from job_tree_engine.types.job_models import (
    Direction,
    GroupItemsResult,
    Job,
    JobFilter,
    JobGroup,
    JobOrder,
    ListItemsResult,
    Match,
)

logger = logging.getLogger(__name__)

JOB_ID_FIELD = "jobId"
GROUP_NAME_COLUMN = "name"
GROUP_COUNT_COLUMN = "count"


def connect(backend_uri: str = ":memory:") -> IbisBaseBackend:
    """Open an Ibis connection; plain paths and ``duckdb://`` URIs use DuckDB."""
    if backend_uri.startswith("sqlite://"):
        return ibis.sqlite.connect(backend_uri.replace("sqlite://", ""))
    if backend_uri.startswith("duckdb://"):
        backend_uri = backend_uri.replace("duckdb://", "")
    return ibis.duckdb.connect(backend_uri)


def build_cache(cache: Union[str, Any], ttl: int, **cache_options: Any) -> Optional[Any]:
    if not isinstance(cache, str):
        return cache
    if cache == "memory":
        return MemoryCache(ttl=ttl)
    if cache == "redis":
        from job_tree_engine.cache.redis_cache import RedisCache
        return RedisCache(ttl=ttl, **cache_options)
    if cache == "none":
        return None
    raise ValueError(f"Unknown cache type: {cache}")


class IbisJobsService(GetJobsService, GroupJobsService):
    def __init__(
        self,
        con: Optional[IbisBaseBackend] = None,
        table_name: str = "jobs",
        cache: Union[str, Any] = "none",
        cache_ttl: int = 5,
        **cache_options: Any
    ):
        self.con = con if con is not None else connect()
        self.table_name = table_name
        self.cache = build_cache(cache, cache_ttl, **cache_options)
        self._lock = threading.Lock()
        self._query_count = 0
        self._cache_hits = 0

    @classmethod
    def from_config(cls, config) -> "IbisJobsService":
        return cls(
            con=connect(config.backend_uri),
            table_name=config.jobs_table,
            cache=config.cache_type,
            cache_ttl=config.cache_ttl,
            **config.redis_config
        )

    def load_jobs(self, jobs: Union[pa.Table, List[Job]]):
        """Replace the jobs table with ``jobs``."""
        if not isinstance(jobs, pa.Table):
            from job_tree_engine.sample_data import jobs_to_arrow
            jobs = jobs_to_arrow(jobs)
        with self._lock:
            self.con.create_table(self.table_name, jobs, overwrite=True)
        if self.cache is not None:
            self.cache.clear()
        logger.info("Loaded %d jobs into table %s", jobs.num_rows, self.table_name)

    def get_stats(self) -> Dict[str, int]:
        return {"queries": self._query_count, "cache_hits": self._cache_hits}

    # Query operations

    async def get_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        skip: int,
        take: int,
    ) -> ListItemsResult:
        cache_key = self._cache_key("jobs", filters, order, skip=skip, take=take)
        cached = self._cache_get(cache_key)
        if cached is None:
            cached = await self._run(self._list_items, filters, order, skip, take)
            self._cache_set(cache_key, cached)
        return ListItemsResult(
            items=[Job.from_dict(item) for item in cached["items"]],
            total_items=cached["total"],
        )

    async def group_jobs(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        grouped_field: str,
        aggregates: List[str],
        skip: int,
        take: int,
    ) -> GroupItemsResult:
        cache_key = self._cache_key(
            "groups", filters, order, grouped_field=grouped_field, aggregates=list(aggregates), skip=skip, take=take
        )
        cached = self._cache_get(cache_key)
        if cached is None:
            cached = await self._run(self._group_items, filters, order, grouped_field, aggregates, skip, take)
            self._cache_set(cache_key, cached)
        return GroupItemsResult(
            groups=[JobGroup.from_dict(group) for group in cached["groups"]],
            total_groups=cached["total"],
        )

    # Expression building

    def build_filter_expression(self, table: IbisTable, filters: List[JobFilter]) -> Optional[IbisExpr]:
        """Converts job filters into a single Ibis boolean expression."""
        ibis_filters = []
        for f in filters:
            if f.field not in table.columns:
                raise ValueError(f"Cannot filter on unknown field '{f.field}'")

            col = table[f.field]
            if f.match == Match.ANY_OF:
                values = f.value if isinstance(f.value, (list, tuple)) else [f.value]
                ibis_filters.append(col.isin([self._coerce(col, v) for v in values]))
            elif f.match == Match.CONTAINS:
                ibis_filters.append(col.cast("string").like(f"%{f.value}%"))
            else:
                ibis_filters.append(col == self._coerce(col, f.value))

        if not ibis_filters:
            return None

        combined_filter = ibis_filters[0]
        for f_expr in ibis_filters[1:]:
            combined_filter &= f_expr
        return combined_filter

    def _coerce(self, col, value: Any) -> Any:
        dtype = col.type()
        if dtype.is_integer():
            return int(value)
        if dtype.is_floating():
            return float(value)
        return str(value)

    def _filtered_table(self, filters: List[JobFilter]) -> IbisTable:
        table = self.con.table(self.table_name)
        predicate = self.build_filter_expression(table, filters)
        return table.filter(predicate) if predicate is not None else table

    def _list_items(self, filters: List[JobFilter], order: JobOrder, skip: int, take: int) -> Dict[str, Any]:
        table = self._filtered_table(filters)
        total = int(table.count().execute())

        field = order.field
        if field not in table.columns:
            logger.warning("Cannot order jobs by unknown field '%s', using %s", field, JOB_ID_FIELD)
            field = JOB_ID_FIELD
        sorts = [self._sort_expression(table[field], order.direction)]
        if field != JOB_ID_FIELD:
            sorts.append(table[JOB_ID_FIELD].asc())

        page = table.order_by(sorts).limit(take, offset=skip).to_pyarrow()
        return {"items": page.to_pylist(), "total": total}

    def _group_items(
        self,
        filters: List[JobFilter],
        order: JobOrder,
        grouped_field: str,
        aggregates: List[str],
        skip: int,
        take: int,
    ) -> Dict[str, Any]:
        table = self._filtered_table(filters)
        if grouped_field not in table.columns:
            raise ValueError(f"Cannot group by unknown field '{grouped_field}'")

        metrics = {GROUP_COUNT_COLUMN: table.count()}
        for field in aggregates:
            if field == grouped_field or field in (GROUP_NAME_COLUMN, GROUP_COUNT_COLUMN):
                continue
            if field not in table.columns:
                logger.warning("Cannot aggregate unknown field '%s'", field)
                continue
            col = table[field]
            metrics[field] = col.sum() if col.type().is_numeric() else col.nunique()

        grouped = table.group_by(table[grouped_field].name(GROUP_NAME_COLUMN)).aggregate(**metrics)
        total = int(grouped.count().execute())

        if order.field == GROUP_COUNT_COLUMN:
            sorts = [self._sort_expression(grouped[GROUP_COUNT_COLUMN], order.direction), grouped[GROUP_NAME_COLUMN].asc()]
        else:
            if order.field != GROUP_NAME_COLUMN:
                logger.warning("Groups can only be ordered by name or count, not '%s'", order.field)
            sorts = [self._sort_expression(grouped[GROUP_NAME_COLUMN], order.direction)]

        page = grouped.order_by(sorts).limit(take, offset=skip).to_pyarrow().to_pylist()
        groups = []
        for row in page:
            name = row.pop(GROUP_NAME_COLUMN)
            count = row.pop(GROUP_COUNT_COLUMN)
            groups.append({
                "name": "" if name is None else str(name),
                "count": int(count),
                "aggregates": row,
            })
        return {"groups": groups, "total": total}

    def _sort_expression(self, col, direction: Direction):
        return col.desc() if direction == Direction.DESC else col.asc()

    # Plumbing

    async def _run(self, fn: Callable[..., Dict[str, Any]], *args: Any) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._locked, fn, *args))

    def _locked(self, fn: Callable[..., Dict[str, Any]], *args: Any) -> Dict[str, Any]:
        with self._lock:
            self._query_count += 1
            return fn(*args)

    def _cache_key(self, kind: str, filters: List[JobFilter], order: JobOrder, **params: Any) -> str:
        hashable = {
            "table": self.table_name,
            "kind": kind,
            "filters": [f.to_dict() for f in filters],
            "order": order.to_dict(),
            **params,
        }
        digest = hashlib.sha256(json.dumps(hashable, sort_keys=True, default=str).encode()).hexdigest()[:32]
        return f"{kind}:{digest}"

    def _cache_get(self, key: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        cached = self.cache.get(key)
        if cached is not None:
            self._cache_hits += 1
        return cached

    def _cache_set(self, key: str, value: Dict[str, Any]):
        if self.cache is not None:
            self.cache.set(key, value)
