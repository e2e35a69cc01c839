import logging
from typing import Dict, List, Union

from roadmap.query.base import Binding, Query, QueryResult, resolve
from roadmap.store.ordering import Direction
from roadmap.store.state_manager import SnapshotStore

logger = logging.getLogger(__name__)

class LocalBinding(Binding):
    """Runs queries against the snapshot store; each call completes synchronously."""

    name = "local"

    def __init__(self, store: SnapshotStore):
        self.store = store

    def _failed(self, action: str, e: Exception) -> QueryResult:
        logger.error(f"Local {action} failed: {e}")
        return QueryResult(None, e)

    async def select(self, query: Query) -> QueryResult:
        try:
            return QueryResult(resolve(self.store.rows(query.table), query), None)
        except Exception as e:
            return self._failed(f"select on {query.table}", e)

    async def insert(self, table: str, rows: Union[Dict, List[Dict]]) -> QueryResult:
        batch = rows if isinstance(rows, list) else [rows]
        try:
            return QueryResult(self.store.insert_rows(table, batch), None)
        except Exception as e:
            return self._failed(f"insert into {table}", e)

    async def update(self, query: Query, changes: Dict) -> QueryResult:
        try:
            return QueryResult(self.store.update_rows(query.table, query.matches, changes), None)
        except Exception as e:
            return self._failed(f"update on {query.table}", e)

    async def delete(self, query: Query) -> QueryResult:
        try:
            return QueryResult(self.store.delete_rows(query.table, query.matches), None)
        except Exception as e:
            return self._failed(f"delete on {query.table}", e)

    async def move(self, table: str, row_id: str, direction: Direction) -> QueryResult:
        try:
            return QueryResult(self.store.move_row(table, row_id, direction), None)
        except Exception as e:
            return self._failed(f"move on {table}", e)
