"""
Persistent snapshot store: the single owner of the project, its epics and tasks.

Every public call is one read-modify-write of the whole document. Nothing is
written until all changes for the call are computed, so a call that raises
leaves the medium untouched. Each call parses a fresh copy from the medium,
so records handed back to callers are never shared with the store.
Writes are compare-and-swap against the payload that was read, so separate
worker processes sharing one medium do not overwrite each other.
"""
import copy
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from roadmap.core.errors import (
    ReferentialIntegrityError, RoadmapError, SnapshotIntegrityError, WriteConflictError,
)
from roadmap.core.identity import new_id, utc_now
from roadmap.store import ordering
from roadmap.store.media import SnapshotMedium
from roadmap.store.ordering import Direction
from roadmap.store.seed_data import build_seed_snapshot

logger = logging.getLogger(__name__)

TABLES = ("projects", "epics", "tasks")

# Optimistic write retries before a call gives up.
WRITE_ATTEMPTS = 5

EPIC_DEFAULTS = {"name": "", "description": "", "type": "content", "start_month": 0, "duration": 3}
TASK_DEFAULTS = {"name": "", "description": "", "owner": "", "start_month": 0, "duration": 1,
                 "type": "prep", "status": "pending"}

# Keys a partial update may never overwrite.
PROTECTED_KEYS = {"id", "created_at", "updated_at", "tasks", "epics"}

Predicate = Callable[[Dict], bool]

def _plain(fields: Dict) -> Dict:
    """Drops enum wrappers so the document stays plain JSON."""
    return {key: (value.value if hasattr(value, "value") else value) for key, value in fields.items()}

def _is_snapshot(data) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("project"), dict)
        and isinstance(data["project"].get("id"), str)
        and isinstance(data.get("epics"), list)
        and isinstance(data.get("tasks"), list)
    )

def check_integrity(snapshot: Dict) -> None:
    """Raises SnapshotIntegrityError unless ids are unique and every parent exists."""
    if not _is_snapshot(snapshot):
        raise SnapshotIntegrityError("Snapshot must contain a project with an id, an epic list and a task list.")
    project_id = snapshot["project"]["id"]
    epic_ids = set()
    for epic in snapshot["epics"]:
        if epic.get("id") in epic_ids:
            raise SnapshotIntegrityError(f"Duplicate epic id {epic.get('id')}.")
        epic_ids.add(epic.get("id"))
        if epic.get("project_id") != project_id:
            raise SnapshotIntegrityError(f"Epic {epic.get('id')} belongs to unknown project {epic.get('project_id')}.")
    task_ids = set()
    for task in snapshot["tasks"]:
        if task.get("id") in task_ids:
            raise SnapshotIntegrityError(f"Duplicate task id {task.get('id')}.")
        task_ids.add(task.get("id"))
        if task.get("epic_id") not in epic_ids:
            raise SnapshotIntegrityError(f"Task {task.get('id')} references unknown epic {task.get('epic_id')}.")

class SnapshotStore:
    def __init__(
        self,
        medium: SnapshotMedium,
        clock: Callable[[], str] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.medium = medium
        self.clock = clock
        self.id_factory = id_factory

    # === Snapshot lifecycle ===

    def _parse(self, raw: Optional[str]) -> Optional[Dict]:
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored snapshot is not valid JSON, reseeding: {e}")
            return None
        if not _is_snapshot(data):
            logger.warning("Stored snapshot has an unexpected shape, reseeding.")
            return None
        return data

    def _save(self, snapshot: Dict) -> None:
        self.medium.write(json.dumps(snapshot, ensure_ascii=False))

    def _seed(self, project_id: Optional[str] = None) -> Dict:
        return build_seed_snapshot(self.clock, self.id_factory, project_id=project_id)

    def _transact(self, mutate: Callable[[Dict], Any], persist: Callable[[Any], bool] = bool) -> Any:
        """
        Runs ``mutate`` on a freshly loaded snapshot and writes the result back
        only if the medium still holds what was read. When another writer got
        there first, the whole call is replayed on the newer snapshot.
        A missing or corrupt snapshot is seeded and always written.
        """
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            raw = self.medium.read()
            snapshot = self._parse(raw)
            seeded = snapshot is None
            if seeded:
                snapshot = self._seed()
            result = mutate(snapshot)
            if not (seeded or persist(result)):
                return result
            if self.medium.swap(raw, json.dumps(snapshot, ensure_ascii=False)):
                if seeded:
                    logger.info(f"Seeded new roadmap store for project {snapshot['project']['id']}")
                return result
            logger.warning(f"Snapshot changed during write, retrying ({attempt}/{WRITE_ATTEMPTS})")
        raise WriteConflictError(f"Snapshot kept changing; gave up after {WRITE_ATTEMPTS} attempts.")

    def ensure_store(self) -> Dict:
        return self._transact(lambda snapshot: snapshot, persist=lambda result: False)

    def get_snapshot(self) -> Dict:
        return self.ensure_store()

    def get_project(self) -> Dict:
        return self.ensure_store()["project"]

    def get_project_id(self) -> str:
        return self.get_project()["id"]

    def replace_store(self, snapshot: Dict) -> None:
        """Overwrites everything with ``snapshot``; no merge with what was there."""
        check_integrity(snapshot)
        self._save(copy.deepcopy(snapshot))
        logger.info(
            f"Replaced roadmap store: {len(snapshot['epics'])} epics, {len(snapshot['tasks'])} tasks"
        )

    def reset_store(self, project_id: Optional[str] = None) -> Dict:
        seeded = self._seed(project_id)
        self._save(seeded)
        logger.info(f"Reset roadmap store to seed data (project {seeded['project']['id']})")
        return seeded

    # === Reads ===

    def list_epics(self, project_id: str) -> List[Dict]:
        snapshot = self.ensure_store()
        return ordering.ranked(epic for epic in snapshot["epics"] if epic["project_id"] == project_id)

    def list_tasks(self, epic_ids: Iterable[str]) -> List[Dict]:
        wanted = set(epic_ids)
        snapshot = self.ensure_store()
        return ordering.ranked(task for task in snapshot["tasks"] if task["epic_id"] in wanted)

    # === Internals shared by record- and row-level calls ===

    def _stamp(self, record: Dict, keep_identity: bool) -> None:
        timestamp = self.clock()
        if not (keep_identity and record.get("id")):
            record["id"] = self.id_factory()
        if not (keep_identity and record.get("created_at")):
            record["created_at"] = timestamp
        if not (keep_identity and record.get("updated_at")):
            record["updated_at"] = timestamp

    def _place(self, siblings: List[Dict], record: Dict, exclude_id: Optional[str] = None) -> None:
        if record.get("order_index") is None:
            record["order_index"] = ordering.next_order_index(siblings)
            return
        shifted = ordering.make_room(siblings, record["order_index"], exclude_id=exclude_id)
        if shifted:
            timestamp = self.clock()
            for item in siblings:
                if item["id"] in shifted:
                    item["updated_at"] = timestamp

    def _add_epic(self, snapshot: Dict, fields: Dict, keep_identity: bool = False) -> Dict:
        project_id = snapshot["project"]["id"]
        epic = {**EPIC_DEFAULTS, **_plain(fields)}
        epic.pop("tasks", None)
        epic.setdefault("project_id", project_id)
        if epic["project_id"] is None:
            epic["project_id"] = project_id
        if epic["project_id"] != project_id:
            raise ReferentialIntegrityError(f"Project {epic['project_id']} not found.")
        self._stamp(epic, keep_identity)
        if any(existing["id"] == epic["id"] for existing in snapshot["epics"]):
            raise RoadmapError(f"Epic {epic['id']} already exists.")
        siblings = [e for e in snapshot["epics"] if e["project_id"] == project_id]
        self._place(siblings, epic)
        snapshot["epics"].append(epic)
        return epic

    def _add_task(self, snapshot: Dict, fields: Dict, keep_identity: bool = False) -> Dict:
        task = {**TASK_DEFAULTS, **_plain(fields)}
        epic_ids = {epic["id"] for epic in snapshot["epics"]}
        if task.get("epic_id") not in epic_ids:
            raise ReferentialIntegrityError(f"Epic {task.get('epic_id')} not found.")
        self._stamp(task, keep_identity)
        if any(existing["id"] == task["id"] for existing in snapshot["tasks"]):
            raise RoadmapError(f"Task {task['id']} already exists.")
        siblings = [t for t in snapshot["tasks"] if t["epic_id"] == task["epic_id"]]
        self._place(siblings, task)
        snapshot["tasks"].append(task)
        return task

    def _update_epic(self, snapshot: Dict, epic: Dict, changes: Dict) -> Dict:
        changes = {k: v for k, v in _plain(changes).items() if k not in PROTECTED_KEYS and v is not None}
        if "project_id" in changes and changes["project_id"] != snapshot["project"]["id"]:
            raise ReferentialIntegrityError(f"Project {changes['project_id']} not found.")
        epic.update(changes)
        epic["updated_at"] = self.clock()
        if "order_index" in changes:
            siblings = [e for e in snapshot["epics"] if e["project_id"] == epic["project_id"]]
            self._place(siblings, epic, exclude_id=epic["id"])
        return epic

    def _update_task(self, snapshot: Dict, task: Dict, changes: Dict) -> Dict:
        changes = {k: v for k, v in _plain(changes).items() if k not in PROTECTED_KEYS and v is not None}
        moved_epic = "epic_id" in changes and changes["epic_id"] != task["epic_id"]
        if moved_epic and not any(epic["id"] == changes["epic_id"] for epic in snapshot["epics"]):
            raise ReferentialIntegrityError(f"Epic {changes['epic_id']} not found.")
        task.update(changes)
        task["updated_at"] = self.clock()
        if moved_epic or "order_index" in changes:
            siblings = [t for t in snapshot["tasks"] if t["epic_id"] == task["epic_id"]]
            self._place(siblings, task, exclude_id=task["id"])
        return task

    def _remove_epics(self, snapshot: Dict, epic_ids: set) -> List[Dict]:
        removed = [epic for epic in snapshot["epics"] if epic["id"] in epic_ids]
        snapshot["epics"] = [epic for epic in snapshot["epics"] if epic["id"] not in epic_ids]
        snapshot["tasks"] = [task for task in snapshot["tasks"] if task["epic_id"] not in epic_ids]
        return removed

    def _move(self, snapshot: Dict, table: str, item_id: str, direction: Direction) -> bool:
        records = snapshot[table]
        current = next((item for item in records if item["id"] == item_id), None)
        if current is None:
            return False
        parent_key = "project_id" if table == "epics" else "epic_id"
        siblings = [item for item in records if item[parent_key] == current[parent_key]]
        pair = ordering.find_swap(siblings, item_id, direction)
        if pair is None:
            return False
        ordering.swap_order(*pair)
        timestamp = self.clock()
        for item in pair:
            item["updated_at"] = timestamp
        return True

    # === Epics ===

    def create_epic(self, fields: Dict) -> Dict:
        return self._transact(lambda snapshot: self._add_epic(snapshot, fields))

    def update_epic(self, epic_id: str, changes: Dict) -> Optional[Dict]:
        def mutate(snapshot):
            epic = next((e for e in snapshot["epics"] if e["id"] == epic_id), None)
            return epic and self._update_epic(snapshot, epic, changes)
        return self._transact(mutate)

    def remove_epic(self, epic_id: str) -> bool:
        return self._transact(lambda snapshot: bool(self._remove_epics(snapshot, {epic_id})))

    def move_epic(self, epic_id: str, direction: Direction) -> bool:
        return self._transact(lambda snapshot: self._move(snapshot, "epics", epic_id, direction))

    # === Tasks ===

    def create_task(self, fields: Dict) -> Dict:
        return self._transact(lambda snapshot: self._add_task(snapshot, fields))

    def update_task(self, task_id: str, changes: Dict) -> Optional[Dict]:
        def mutate(snapshot):
            task = next((t for t in snapshot["tasks"] if t["id"] == task_id), None)
            return task and self._update_task(snapshot, task, changes)
        return self._transact(mutate)

    def remove_task(self, task_id: str) -> bool:
        def mutate(snapshot):
            remaining = [task for task in snapshot["tasks"] if task["id"] != task_id]
            removed = len(remaining) != len(snapshot["tasks"])
            snapshot["tasks"] = remaining
            return removed
        return self._transact(mutate)

    def move_task(self, task_id: str, direction: Direction) -> bool:
        return self._transact(lambda snapshot: self._move(snapshot, "tasks", task_id, direction))

    # === Row-level access for the local query binding ===

    def rows(self, table: str) -> List[Dict]:
        snapshot = self.ensure_store()
        if table == "projects":
            return [snapshot["project"]]
        if table not in TABLES:
            raise RoadmapError(f"Unknown table: {table}")
        return snapshot[table]

    def insert_rows(self, table: str, rows: List[Dict]) -> List[Dict]:
        if table == "projects":
            raise RoadmapError("The local store holds exactly one project; use replace_store or reset_store.")
        if table not in TABLES:
            raise RoadmapError(f"Unknown table: {table}")
        add = self._add_epic if table == "epics" else self._add_task
        return self._transact(lambda snapshot: [add(snapshot, row, keep_identity=True) for row in rows])

    def update_rows(self, table: str, predicate: Predicate, changes: Dict) -> List[Dict]:
        if table not in TABLES:
            raise RoadmapError(f"Unknown table: {table}")

        def mutate(snapshot):
            if table == "projects":
                project = snapshot["project"]
                if not predicate(project):
                    return []
                project.update({k: v for k, v in _plain(changes).items()
                                if k not in PROTECTED_KEYS and v is not None})
                project["updated_at"] = self.clock()
                return [project]
            apply = self._update_epic if table == "epics" else self._update_task
            matched = [row for row in snapshot[table] if predicate(row)]
            for row in matched:
                apply(snapshot, row, changes)
            return matched

        return self._transact(mutate)

    def delete_rows(self, table: str, predicate: Predicate) -> List[Dict]:
        if table == "projects":
            raise RoadmapError("The local store project cannot be deleted, only replaced.")
        if table not in TABLES:
            raise RoadmapError(f"Unknown table: {table}")

        def mutate(snapshot):
            if table == "epics":
                return self._remove_epics(snapshot, {epic["id"] for epic in snapshot["epics"] if predicate(epic)})
            removed = [task for task in snapshot["tasks"] if predicate(task)]
            snapshot["tasks"] = [task for task in snapshot["tasks"] if not predicate(task)]
            return removed

        return self._transact(mutate)

    def move_row(self, table: str, row_id: str, direction: Direction) -> bool:
        if table == "epics":
            return self.move_epic(row_id, direction)
        if table == "tasks":
            return self.move_task(row_id, direction)
        raise RoadmapError(f"Rows of table {table} cannot be moved.")
