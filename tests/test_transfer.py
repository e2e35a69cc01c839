import csv
import io
import math

import pytest

from roadmap.core.errors import ImportValidationError
from roadmap.transfer.exporter import CSV_HEADERS, export_csv, export_json, export_snapshot, nest_tasks
from roadmap.transfer.importer import import_snapshot, normalize_import

def _normalize(payload, clock, ids):
    return normalize_import(payload, "p1", clock, ids)

@pytest.mark.parametrize("payload,message", [
    (None, "The file contains no project data."),
    ([], "The file contains no project data."),
    ({"project": "X"}, "The file has no epic list."),
    ({"epics": {"a": 1}}, "The file has no epic list."),
])
def test_import_rejects_wrong_shape(payload, message, clock, ids):
    with pytest.raises(ImportValidationError) as exc:
        _normalize(payload, clock, ids)
    assert str(exc.value) == message

def test_import_defaults_every_field(clock, ids):
    snapshot = _normalize({"epics": [{"tasks": [{}]}, "junk"]}, clock, ids)

    assert snapshot["project"]["id"] == "p1"
    assert snapshot["project"]["name"] == "Imported project"
    first, second = snapshot["epics"]
    assert first["name"] == "Epic 1" and second["name"] == "Epic 2"
    assert first["type"] == "content"
    assert (first["start_month"], first["duration"], first["order_index"]) == (0, 1, 0)
    assert second["order_index"] == 1

    (task,) = snapshot["tasks"]
    assert task["epic_id"] == first["id"]
    assert task["name"] == "Task 1"
    assert (task["type"], task["status"], task["owner"]) == ("prep", "pending", "")
    assert (task["duration"], task["order_index"]) == (1, 0)

def test_import_task_start_defaults_to_epic_start(clock, ids):
    snapshot = _normalize({"epics": [{"start_month": 4.5, "tasks": [{"name": "T"}]}]}, clock, ids)
    assert snapshot["tasks"][0]["start_month"] == 4.5

def test_import_rejects_invalid_values(clock, ids):
    payload = {"project": {"name": "Plan", "description": "Desc"}, "epics": [{
        "id": "e1", "name": "Epic", "type": "unknown", "start_month": "3", "duration": math.inf,
        "order_index": True,
        "tasks": [{"id": 42, "status": "blocked", "type": "dev", "duration": math.nan, "owner": "Ann"}],
    }]}
    snapshot = _normalize(payload, clock, ids)
    epic = snapshot["epics"][0]
    assert epic["id"] == "e1"
    assert (epic["type"], epic["start_month"], epic["duration"], epic["order_index"]) == ("content", 0, 1, 0)
    task = snapshot["tasks"][0]
    assert task["id"] != 42
    assert (task["status"], task["type"], task["duration"], task["owner"]) == ("pending", "dev", 1, "Ann")
    assert snapshot["project"]["name"] == "Plan"
    assert snapshot["project"]["description"] == "Desc"

def test_import_accepts_project_name_string(clock, ids):
    assert _normalize({"project": "Roadmap", "epics": []}, clock, ids)["project"]["name"] == "Roadmap"

def test_import_replaces_store_but_keeps_project_id(store, project_id):
    import_snapshot(store, {"project": "Fresh", "epics": [{"name": "Only", "tasks": [{"name": "One"}]}]})
    assert store.get_project()["name"] == "Fresh"
    assert store.get_project_id() == project_id
    epics = store.list_epics(project_id)
    assert [e["name"] for e in epics] == ["Only"]
    assert [t["name"] for t in store.list_tasks([epics[0]["id"]])] == ["One"]

def test_failed_import_leaves_store_untouched(store, medium, project_id):
    before = medium.payload
    with pytest.raises(ImportValidationError):
        import_snapshot(store, {"project": "Broken"})
    assert medium.payload == before

def _fields(exported):
    keys = ("id", "name", "order_index", "start_month", "duration")
    return [
        (tuple(e[k] for k in keys), [tuple(t[k] for k in keys) for t in e["tasks"]])
        for e in exported["epics"]
    ]

def test_export_then_import_round_trip(store, project_id, clock):
    exported = export_snapshot(store, clock)
    assert exported["project"] == "VK Video news launch"
    assert exported["exportedAt"]
    before = _fields(exported)

    import_snapshot(store, exported)
    after = export_snapshot(store, clock)
    assert _fields(after) == before
    assert sum(len(e["tasks"]) for e in after["epics"]) == 33

def test_import_resolves_sibling_order_collisions(store):
    import_snapshot(store, {"epics": [
        {"id": "e1", "order_index": 0, "tasks": [{"id": "a", "order_index": 1}, {"id": "b"}]},
        {"id": "e2", "order_index": 0, "tasks": []},
    ]})
    epics = store.list_epics(store.get_project_id())
    assert [(e["id"], e["order_index"]) for e in epics] == [("e1", 0), ("e2", 1)]
    assert [(t["id"], t["order_index"]) for t in store.list_tasks(["e1"])] == [("a", 1), ("b", 2)]

    assert store.move_task("a", "down") is True
    assert [t["id"] for t in store.list_tasks(["e1"])] == ["b", "a"]

def test_import_regenerates_repeated_ids(store):
    snapshot = import_snapshot(store, {"epics": [
        {"id": "e", "tasks": [{"id": "t", "name": "First"}]},
        {"id": "e", "tasks": [{"id": "t", "name": "Second"}, {"id": "", "name": "Blank"}]},
    ]})
    epic_ids = [e["id"] for e in snapshot["epics"]]
    task_ids = [t["id"] for t in snapshot["tasks"]]
    assert epic_ids[0] == "e" and len(set(epic_ids)) == 2
    assert task_ids[0] == "t" and len(set(task_ids)) == 3
    second = store.list_tasks([epic_ids[1]])
    assert [t["name"] for t in second] == ["Second", "Blank"]

def test_nest_tasks_orders_and_groups():
    epics = [{"id": "b", "order_index": 2}, {"id": "a", "order_index": 1}]
    tasks = [
        {"id": "t2", "epic_id": "a", "order_index": 5},
        {"id": "t1", "epic_id": "a", "order_index": 1},
        {"id": "t3", "epic_id": "b", "order_index": 0},
    ]
    nested = nest_tasks(epics, tasks)
    assert [e["id"] for e in nested] == ["a", "b"]
    assert [t["id"] for t in nested[0]["tasks"]] == ["t1", "t2"]

def test_export_json_shape(clock):
    exported = export_json("Plan", [{"id": "e", "name": "E"}], clock)
    assert exported == {"project": "Plan", "exportedAt": "2026-01-01T00:00:00.001Z",
                        "epics": [{"id": "e", "name": "E", "tasks": []}]}

def test_export_csv_quotes_every_cell():
    epics = [{"name": 'Launch "v1"', "tasks": [
        {"name": "Ship, then test", "owner": "Ann", "type": "launch", "status": "done",
         "start_month": 2.0, "duration": 0.5, "description": "line one\nline two"},
    ]}, {"name": "Empty", "tasks": []}]
    text = export_csv(epics)

    assert text.splitlines()[0] == ",".join(f'"{h}"' for h in CSV_HEADERS)
    assert not text.endswith("\n")
    assert '"Launch ""v1"""' in text
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[1] == ['Launch "v1"', "Ship, then test", "Ann", "launch", "done", "2", "0.5", "line one\nline two"]
    assert len(rows) == 2

def test_export_csv_header_only():
    assert export_csv([]) == ",".join(f'"{h}"' for h in CSV_HEADERS)
