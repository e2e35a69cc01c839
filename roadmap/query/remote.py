"""
Remote binding over a PostgREST (Supabase-style) REST endpoint.

Filters map onto PostgREST operators (``field=eq.value``, ``field=in.(a,b)``),
the sort key onto ``order=field.asc|desc`` and the limit onto ``limit=n``.
Failures come back as ``QueryResult(None, RemoteBackendError)``; retrying is
left to the caller.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from roadmap.core.errors import RemoteBackendError
from roadmap.core.identity import new_id, utc_now
from roadmap.query.base import Binding, Eq, Query, QueryResult
from roadmap.store import ordering
from roadmap.store.ordering import Direction

logger = logging.getLogger(__name__)

PARENT_KEYS = {"epics": "project_id", "tasks": "epic_id"}

def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):
        value = value.value
    return str(value)

def _quote(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    text = _format_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'

def build_params(query: Query, with_order: bool = True) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    for f in query.filters:
        if isinstance(f, Eq):
            params.append((f.field, "is.null" if f.value is None else f"eq.{_format_value(f.value)}"))
        else:
            params.append((f.field, f"in.({','.join(_quote(v) for v in f.values)})"))
    if with_order and query.order is not None:
        params.append(("order", f"{query.order.field}.{'asc' if query.order.ascending else 'desc'}"))
    if with_order and query.limit is not None:
        params.append(("limit", str(query.limit)))
    return params

class RemoteBinding(Binding):
    name = "remote"

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], str] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.base_url = f"{url.rstrip('/')}/rest/v1/"
        self.clock = clock
        self.id_factory = id_factory
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, table: str, params=None, json=None, prefer: Optional[str] = None) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self.client.request(method, table, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteBackendError(None, f"{method} {table} failed: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("message") or response.text
            except ValueError:
                detail = response.text
            raise RemoteBackendError(response.status_code, detail)

        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as e:
            raise RemoteBackendError(response.status_code, f"Unparseable response body: {e}")

    def _failed(self, action: str, e: RemoteBackendError) -> QueryResult:
        logger.error(f"Remote {action} failed: {e}")
        return QueryResult(None, e)

    async def select(self, query: Query) -> QueryResult:
        params = [("select", "*")] + build_params(query)
        try:
            return QueryResult(await self._request("GET", query.table, params=params), None)
        except RemoteBackendError as e:
            return self._failed(f"select on {query.table}", e)

    async def insert(self, table: str, rows: Union[Dict, List[Dict]]) -> QueryResult:
        batch = rows if isinstance(rows, list) else [rows]
        timestamp = self.clock()
        payload = []
        for row in batch:
            row = {k: (v.value if hasattr(v, "value") else v) for k, v in row.items()}
            row.setdefault("id", None)
            row["id"] = row["id"] or self.id_factory()
            row["created_at"] = row.get("created_at") or timestamp
            row["updated_at"] = row.get("updated_at") or timestamp
            payload.append(row)
        try:
            data = await self._request("POST", table, json=payload, prefer="return=representation")
            return QueryResult(data, None)
        except RemoteBackendError as e:
            return self._failed(f"insert into {table}", e)

    async def update(self, query: Query, changes: Dict) -> QueryResult:
        body = {k: (v.value if hasattr(v, "value") else v) for k, v in changes.items() if k != "id"}
        body["updated_at"] = self.clock()
        try:
            data = await self._request(
                "PATCH", query.table, params=build_params(query, with_order=False), json=body,
                prefer="return=representation",
            )
            return QueryResult(data, None)
        except RemoteBackendError as e:
            return self._failed(f"update on {query.table}", e)

    async def delete(self, query: Query) -> QueryResult:
        try:
            data = await self._request(
                "DELETE", query.table, params=build_params(query, with_order=False),
                prefer="return=representation",
            )
            return QueryResult(data, None)
        except RemoteBackendError as e:
            return self._failed(f"delete on {query.table}", e)

    async def move(self, table: str, row_id: str, direction: Direction) -> QueryResult:
        """Swaps order_index with the neighbour; two PATCH calls, not one transaction."""
        parent_key = PARENT_KEYS.get(table)
        if parent_key is None:
            return QueryResult(None, RemoteBackendError(None, f"Rows of table {table} cannot be moved."))
        current = await self.first(Query(table).eq("id", row_id))
        if current.error is not None or current.data is None:
            return QueryResult(False, current.error)
        siblings = await self.select(Query(table).eq(parent_key, current.data[parent_key]))
        if siblings.error is not None:
            return QueryResult(False, siblings.error)
        pair = ordering.find_swap(siblings.data, row_id, direction)
        if pair is None:
            return QueryResult(False, None)
        mine, theirs = pair
        new_mine, new_theirs = theirs["order_index"], mine["order_index"]
        for row_key, order_index in ((mine["id"], new_mine), (theirs["id"], new_theirs)):
            result = await self.update(Query(table).eq("id", row_key), {"order_index": order_index})
            if result.error is not None:
                return QueryResult(False, result.error)
        return QueryResult(True, None)
