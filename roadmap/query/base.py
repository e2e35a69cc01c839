"""
Backend-agnostic query contract.

A ``Query`` is a plain value: a table, AND-composed filters, at most one sort
key and an optional limit. Nothing runs until a ``Binding`` awaits it, so the
same call sites work against the local store and the remote backend.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from roadmap.store.ordering import Direction

@dataclass(frozen=True)
class Eq:
    field: str
    value: Any

    def matches(self, row: Dict) -> bool:
        return row.get(self.field) == self.value

@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]

    def matches(self, row: Dict) -> bool:
        return row.get(self.field) in self.values

Filter = Union[Eq, In]

@dataclass(frozen=True)
class OrderBy:
    field: str
    ascending: bool = True

@dataclass(frozen=True)
class Query:
    table: str
    filters: Tuple[Filter, ...] = ()
    order: Optional[OrderBy] = None
    limit: Optional[int] = None

    def eq(self, field_name: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (Eq(field_name, value),))

    def in_(self, field_name: str, values: Sequence[Any]) -> "Query":
        return replace(self, filters=self.filters + (In(field_name, tuple(values)),))

    def order_by(self, field_name: str, ascending: bool = True) -> "Query":
        return replace(self, order=OrderBy(field_name, ascending))

    def limit_to(self, count: int) -> "Query":
        return replace(self, limit=count)

    def matches(self, row: Dict) -> bool:
        return all(f.matches(row) for f in self.filters)

@dataclass
class QueryResult:
    data: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

def _sort_key(value):
    # None sorts last; mixed numbers compare numerically
    return (value is None, value if value is not None else 0)

def resolve(rows: List[Dict], query: Query) -> List[Dict]:
    """Applies filters, a stable single-key sort and the limit, in that order."""
    result = [row for row in rows if query.matches(row)]
    if query.order is not None:
        key = query.order.field
        result = sorted(result, key=lambda row: _sort_key(row.get(key)), reverse=not query.order.ascending)
    if query.limit is not None:
        result = result[:query.limit]
    return result

class Binding(ABC):
    """One backend behind the uniform query contract. Methods never raise."""

    name: str = "abstract"

    @abstractmethod
    async def select(self, query: Query) -> QueryResult:
        ...

    async def first(self, query: Query) -> QueryResult:
        result = await self.select(query.limit_to(1) if query.limit is None or query.limit > 1 else query)
        if result.error is not None:
            return QueryResult(None, result.error)
        return QueryResult(result.data[0] if result.data else None, None)

    @abstractmethod
    async def insert(self, table: str, rows: Union[Dict, List[Dict]]) -> QueryResult:
        ...

    @abstractmethod
    async def update(self, query: Query, changes: Dict) -> QueryResult:
        ...

    @abstractmethod
    async def delete(self, query: Query) -> QueryResult:
        ...

    @abstractmethod
    async def move(self, table: str, row_id: str, direction: Direction) -> QueryResult:
        ...

    async def close(self) -> None:
        return None
