"""
Turns an arbitrary JSON document into a complete, valid roadmap snapshot.

Every field is defaulted; only the overall shape (an object with
an ``epics`` list) is required. The result replaces the whole store at once,
there is no merge import.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Set

from roadmap.core.errors import ImportValidationError
from roadmap.core.identity import new_id, utc_now
from roadmap.store import ordering
from roadmap.store.schemas import EPIC_TYPES, TASK_STATUSES, TASK_TYPES

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Imported project"

def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)

def _number(value: Any, default):
    return value if _is_finite_number(value) else default

def _text(value: Any, default: str) -> str:
    if not value:
        return default
    return value if isinstance(value, str) else str(value)

def _choice(value: Any, allowed, default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default

def _unique_id(value: Any, seen: Set[str], id_factory: Callable[[], str]) -> str:
    """Keeps a string id unless an earlier record already claimed it."""
    record_id = value if isinstance(value, str) and value else id_factory()
    while record_id in seen:
        record_id = id_factory()
    seen.add(record_id)
    return record_id

def _free_order(order_index, siblings: List[Dict]):
    if any(sibling["order_index"] == order_index for sibling in siblings):
        return ordering.next_order_index(siblings)
    return order_index

def _project_fields(raw_project: Any):
    if isinstance(raw_project, str):
        name = raw_project
    elif isinstance(raw_project, dict) and isinstance(raw_project.get("name"), str):
        name = raw_project["name"]
    else:
        name = DEFAULT_PROJECT_NAME
    description = ""
    if isinstance(raw_project, dict) and isinstance(raw_project.get("description"), str):
        description = raw_project["description"]
    return name, description

def normalize_import(
    payload: Any,
    project_id: str,
    clock: Callable[[], str] = utc_now,
    id_factory: Callable[[], str] = new_id,
) -> Dict:
    if not isinstance(payload, dict):
        raise ImportValidationError("The file contains no project data.")
    raw_epics = payload.get("epics")
    if not isinstance(raw_epics, list):
        raise ImportValidationError("The file has no epic list.")

    timestamp = clock()
    name, description = _project_fields(payload.get("project"))
    project = {
        "id": project_id,
        "name": name,
        "description": description,
        "created_at": timestamp,
        "updated_at": timestamp,
    }

    epics: List[Dict] = []
    tasks: List[Dict] = []
    seen_epic_ids: Set[str] = set()
    seen_task_ids: Set[str] = set()
    for epic_index, raw_epic in enumerate(raw_epics):
        if not isinstance(raw_epic, dict):
            raw_epic = {}
        epic_id = _unique_id(raw_epic.get("id"), seen_epic_ids, id_factory)
        epic_start = _number(raw_epic.get("start_month"), 0)
        epics.append({
            "id": epic_id,
            "project_id": project_id,
            "name": _text(raw_epic.get("name"), f"Epic {epic_index + 1}"),
            "description": _text(raw_epic.get("description"), ""),
            "type": _choice(raw_epic.get("type"), EPIC_TYPES, "content"),
            "start_month": epic_start,
            "duration": _number(raw_epic.get("duration"), 1),
            "order_index": _free_order(_number(raw_epic.get("order_index"), epic_index), epics),
            "created_at": _text(raw_epic.get("created_at"), timestamp),
            "updated_at": _text(raw_epic.get("updated_at"), timestamp),
        })

        raw_tasks = raw_epic.get("tasks") if isinstance(raw_epic.get("tasks"), list) else []
        siblings: List[Dict] = []
        for task_index, raw_task in enumerate(raw_tasks):
            if not isinstance(raw_task, dict):
                raw_task = {}
            task = {
                "id": _unique_id(raw_task.get("id"), seen_task_ids, id_factory),
                "epic_id": epic_id,
                "name": _text(raw_task.get("name"), f"Task {task_index + 1}"),
                "description": _text(raw_task.get("description"), ""),
                "owner": _text(raw_task.get("owner"), ""),
                "start_month": _number(raw_task.get("start_month"), epic_start),
                "duration": _number(raw_task.get("duration"), 1),
                "type": _choice(raw_task.get("type"), TASK_TYPES, "prep"),
                "status": _choice(raw_task.get("status"), TASK_STATUSES, "pending"),
                "order_index": _free_order(_number(raw_task.get("order_index"), task_index), siblings),
                "created_at": _text(raw_task.get("created_at"), timestamp),
                "updated_at": _text(raw_task.get("updated_at"), timestamp),
            }
            siblings.append(task)
            tasks.append(task)

    return {"project": project, "epics": epics, "tasks": tasks}

def import_snapshot(store, payload: Any) -> Dict:
    """Validates ``payload`` and, only if that succeeds, replaces the store with it."""
    snapshot = normalize_import(payload, store.get_project_id(), store.clock, store.id_factory)
    store.replace_store(snapshot)
    logger.info(f"Imported project '{snapshot['project']['name']}'")
    return snapshot
