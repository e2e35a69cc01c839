import csv
import io
from typing import Callable, Dict, Iterable, List

from roadmap.core.identity import utc_now
from roadmap.store import ordering

CSV_HEADERS = ["Epic", "Task", "Owner", "Type", "Status", "Start Month", "Duration", "Description"]

def nest_tasks(epics: Iterable[Dict], tasks: Iterable[Dict]) -> List[Dict]:
    """Epics (in order) each carrying their own ordered ``tasks`` list."""
    by_epic: Dict[str, List[Dict]] = {}
    for task in ordering.ranked(tasks):
        by_epic.setdefault(task["epic_id"], []).append(task)
    return [{**epic, "tasks": by_epic.get(epic["id"], [])} for epic in ordering.ranked(epics)]

def export_json(project_name: str, epics_with_tasks: List[Dict], clock: Callable[[], str] = utc_now) -> Dict:
    return {
        "project": project_name,
        "exportedAt": clock(),
        "epics": [{**epic, "tasks": list(epic.get("tasks") or [])} for epic in epics_with_tasks],
    }

def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

def export_csv(epics_with_tasks: List[Dict]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for epic in epics_with_tasks:
        for task in epic.get("tasks") or []:
            writer.writerow([_cell(v) for v in (
                epic["name"], task["name"], task.get("owner"), task.get("type"), task.get("status"),
                task.get("start_month"), task.get("duration"), task.get("description"),
            )])
    # rows are joined with newlines, no trailing one
    return buffer.getvalue().rstrip("\n")

def export_snapshot(store, clock: Callable[[], str] = utc_now) -> Dict:
    project = store.get_project()
    epics = store.list_epics(project["id"])
    tasks = store.list_tasks([epic["id"] for epic in epics])
    return export_json(project["name"], nest_tasks(epics, tasks), clock)
