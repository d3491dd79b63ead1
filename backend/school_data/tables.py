"""
Table gateway interface and adapters for the school tables.

Why:
    Every data screen of the portal is a direct query or mutation against the
    hosted Supabase database; uniqueness, cascades and row authorization live
    there (row-level security). The gateway keeps that pass-through behind a
    tiny protocol so routes and services stay testable without a database.

Adapters:
    - `SupabaseTableGateway`: PostgREST via a supabase-py client that is already
      authenticated with the caller's access token.
    - `InMemoryTableGateway`: development/test double with the same semantics
      for the subset of filters the portal uses.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence
from uuid import uuid4


class DataAccessError(Exception):
    """Raised when the backend rejects or fails a query."""

    def __init__(self, code: str, detail: str | None = None):
        super().__init__(code)
        self.code = code
        self.detail = detail


FILTER_OPS = ("eq", "gte", "lte")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            raise ValueError("invalid_filter_op")


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


class TableGateway(Protocol):
    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int: ...

    def insert(self, table: str, values: Mapping[str, Any]) -> Dict[str, Any]: ...

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> Optional[Dict[str, Any]]: ...

    def upsert(
        self, table: str, rows: Sequence[Mapping[str, Any]], *, on_conflict: Sequence[str]
    ) -> List[Dict[str, Any]]: ...

    def delete(self, table: str, row_id: str) -> bool: ...


class SupabaseTableGateway:
    """Gateway using a supabase-py client (`client.table(name)` query builder)."""

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def for_access_token(cls, client_factory, access_token: str) -> "SupabaseTableGateway":
        client = client_factory()
        client.postgrest.auth(access_token)
        return cls(client)

    @staticmethod
    def _apply_filters(query: Any, filters: Sequence[Filter]) -> Any:
        for f in filters:
            query = getattr(query, f.op)(f.column, f.value)
        return query

    def _execute(self, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as exc:
            raise DataAccessError("query_failed", f"{exc.__class__.__name__}: {exc}") from exc

    def select(self, table, *, columns="*", filters=(), order=None, limit=None):
        query = self._apply_filters(self._client.table(table).select(columns), filters)
        if order is not None:
            query = query.order(order.column, desc=order.descending)
        if limit is not None:
            query = query.limit(limit)
        data = getattr(self._execute(query), "data", None)
        return [row for row in (data or []) if isinstance(row, dict)]

    def count(self, table, *, filters=()):
        query = self._apply_filters(self._client.table(table).select("id", count="exact", head=True), filters)
        res = self._execute(query)
        return int(getattr(res, "count", 0) or 0)

    def insert(self, table, values):
        res = self._execute(self._client.table(table).insert(dict(values)))
        data = getattr(res, "data", None) or []
        return data[0] if data else dict(values)

    def update(self, table, row_id, values):
        res = self._execute(self._client.table(table).update(dict(values)).eq("id", row_id))
        data = getattr(res, "data", None) or []
        return data[0] if data else None

    def upsert(self, table, rows, *, on_conflict):
        payload = [dict(r) for r in rows]
        if not payload:
            return []
        res = self._execute(self._client.table(table).upsert(payload, on_conflict=",".join(on_conflict)))
        return [row for row in (getattr(res, "data", None) or []) if isinstance(row, dict)]

    def delete(self, table, row_id):
        res = self._execute(self._client.table(table).delete().eq("id", row_id))
        return bool(getattr(res, "data", None))


def _matches(row: Mapping[str, Any], f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if value is None:
        return False
    if f.op == "gte":
        return value >= f.value
    return value <= f.value


class InMemoryTableGateway:
    """In-process gateway; ids are UUIDs, `created_at` is set on insert."""

    def __init__(self, seed: Mapping[str, Sequence[Mapping[str, Any]]] | None = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        for name, rows in (seed or {}).items():
            for row in rows:
                self.insert(name, row)

    def select(self, table, *, columns="*", filters=(), order=None, limit=None):
        rows = [dict(r) for r in self.tables.get(table, []) if all(_matches(r, f) for f in filters)]
        if order is not None:
            # None sorts last in both directions, like PostgREST's default.
            present = [r for r in rows if r.get(order.column) is not None]
            missing = [r for r in rows if r.get(order.column) is None]
            present.sort(key=lambda r: r[order.column], reverse=order.descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",") if c.strip()]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    def count(self, table, *, filters=()):
        return len(self.select(table, filters=filters))

    def insert(self, table, values):
        row = dict(values)
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def update(self, table, row_id, values):
        for row in self.tables.get(table, []):
            if row.get("id") == row_id:
                row.update(values)
                return dict(row)
        return None

    def upsert(self, table, rows, *, on_conflict):
        # A row matching every conflict column is replaced in place; id and created_at survive.
        out = []
        existing = self.tables.setdefault(table, [])
        for values in rows:
            key = tuple(values.get(c) for c in on_conflict)
            for row in existing:
                if tuple(row.get(c) for c in on_conflict) == key:
                    row.update(values)
                    out.append(dict(row))
                    break
            else:
                out.append(self.insert(table, values))
        return out

    def delete(self, table, row_id):
        rows = self.tables.get(table, [])
        for i, row in enumerate(rows):
            if row.get("id") == row_id:
                del rows[i]
                return True
        return False


__all__ = [
    "DataAccessError",
    "Filter",
    "Order",
    "TableGateway",
    "SupabaseTableGateway",
    "InMemoryTableGateway",
    "FILTER_OPS",
]
