import logging
from typing import Dict, List, Optional

from roadmap.core.identity import new_id, utc_now
from roadmap.query.base import Binding, Query, QueryResult
from roadmap.store import ordering
from roadmap.store.ordering import Direction
from roadmap.store.schemas import STATUS_CYCLE
from roadmap.store.seed_data import build_seed_snapshot
from roadmap.transfer.exporter import nest_tasks

logger = logging.getLogger(__name__)

def _unwrap(result: QueryResult):
    if result.error is not None:
        raise result.error
    return result.data

class RoadmapService:
    """Roadmap use cases expressed only through the query contract, so they run on either binding."""

    def __init__(self, binding: Binding):
        self.binding = binding

    async def ensure_project(self) -> str:
        """Id of the first project; seeds one through the binding when the backend is empty."""
        existing = _unwrap(await self.binding.first(Query("projects")))
        if existing:
            return existing["id"]

        seed = build_seed_snapshot(utc_now, new_id)
        _unwrap(await self.binding.insert("projects", seed["project"]))
        _unwrap(await self.binding.insert("epics", seed["epics"]))
        _unwrap(await self.binding.insert("tasks", seed["tasks"]))
        logger.info(f"Seeded project {seed['project']['id']} through the {self.binding.name} binding")
        return seed["project"]["id"]

    async def get_project(self) -> Optional[Dict]:
        return _unwrap(await self.binding.first(Query("projects")))

    async def get_task(self, task_id: str) -> Optional[Dict]:
        return _unwrap(await self.binding.first(Query("tasks").eq("id", task_id)))

    async def load_epics(self, project_id: str) -> List[Dict]:
        epics = _unwrap(await self.binding.select(
            Query("epics").eq("project_id", project_id).order_by("order_index")
        ))
        if not epics:
            return []
        tasks = _unwrap(await self.binding.select(
            Query("tasks").in_("epic_id", [epic["id"] for epic in epics]).order_by("order_index")
        ))
        return nest_tasks(epics, tasks)

    async def save_epic(self, project_id: str, fields: Dict) -> Optional[Dict]:
        """Updates when ``fields`` carries an id, otherwise appends a new epic after its siblings."""
        fields = {k: v for k, v in fields.items() if v is not None}
        if fields.get("id"):
            epic_id = fields.pop("id")
            updated = _unwrap(await self.binding.update(Query("epics").eq("id", epic_id), fields))
            return updated[0] if updated else None

        name = (fields.get("name") or "").strip()
        if not name:
            return None
        siblings = _unwrap(await self.binding.select(Query("epics").eq("project_id", project_id)))
        created = _unwrap(await self.binding.insert("epics", {
            "project_id": project_id,
            "name": name,
            "description": fields.get("description", ""),
            "type": fields.get("type", "content"),
            "start_month": fields.get("start_month", 0),
            "duration": fields.get("duration", 3),
            "order_index": fields.get("order_index", ordering.next_order_index(siblings)),
        }))
        return created[0] if created else None

    async def save_task(self, epic_id: str, fields: Dict) -> Optional[Dict]:
        fields = {k: v for k, v in fields.items() if v is not None}
        epic = _unwrap(await self.binding.first(Query("epics").eq("id", epic_id)))
        if epic is None:
            return None

        if fields.get("id"):
            task_id = fields.pop("id")
            fields["epic_id"] = epic_id
            updated = _unwrap(await self.binding.update(Query("tasks").eq("id", task_id), fields))
            return updated[0] if updated else None

        name = (fields.get("name") or "").strip()
        if not name:
            return None
        siblings = _unwrap(await self.binding.select(Query("tasks").eq("epic_id", epic_id)))
        created = _unwrap(await self.binding.insert("tasks", {
            "epic_id": epic_id,
            "name": name,
            "description": fields.get("description", ""),
            "owner": fields.get("owner", ""),
            "start_month": fields.get("start_month", epic.get("start_month", 0)),
            "duration": fields.get("duration", 1),
            "type": fields.get("type", "prep"),
            "status": fields.get("status", "pending"),
            "order_index": fields.get("order_index", ordering.next_order_index(siblings)),
        }))
        return created[0] if created else None

    async def delete_epic(self, epic_id: str) -> bool:
        removed = _unwrap(await self.binding.delete(Query("epics").eq("id", epic_id)))
        # backends without ON DELETE CASCADE would otherwise keep orphans
        _unwrap(await self.binding.delete(Query("tasks").eq("epic_id", epic_id)))
        return bool(removed)

    async def delete_task(self, task_id: str) -> bool:
        return bool(_unwrap(await self.binding.delete(Query("tasks").eq("id", task_id))))

    async def move_epic(self, epic_id: str, direction: Direction) -> bool:
        return bool(_unwrap(await self.binding.move("epics", epic_id, direction)))

    async def move_task(self, task_id: str, direction: Direction) -> bool:
        return bool(_unwrap(await self.binding.move("tasks", task_id, direction)))

    async def cycle_task_status(self, task_id: str) -> Optional[Dict]:
        """pending -> in-progress -> done -> pending"""
        task = _unwrap(await self.binding.first(Query("tasks").eq("id", task_id)))
        if task is None:
            return None
        current = STATUS_CYCLE.index(task["status"]) if task["status"] in STATUS_CYCLE else -1
        next_status = STATUS_CYCLE[(current + 1) % len(STATUS_CYCLE)]
        updated = _unwrap(await self.binding.update(Query("tasks").eq("id", task_id), {"status": next_status}))
        return updated[0] if updated else None
