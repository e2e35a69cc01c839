import json

import httpx
import pytest

from roadmap.board.filters import TaskFilter, exceeds_year, owners, quarter_of, quarter_stats, task_months
from roadmap.board.service import RoadmapService
from roadmap.query.base import Query
from roadmap.query.local import LocalBinding
from roadmap.query.remote import RemoteBinding

def _task(**fields):
    task = {"name": "Task", "description": "", "owner": "", "type": "prep", "status": "pending",
            "start_month": 0, "duration": 1}
    task.update(fields)
    return task

def test_task_months():
    assert task_months(_task(start_month=0, duration=1)) == {0}
    assert task_months(_task(start_month=0.5, duration=1)) == {0, 1}
    assert task_months(_task(start_month=2.5, duration=0.3)) == {2}
    assert task_months(_task(start_month=11, duration=2)) == {11, 0}

def test_quarter_helpers():
    assert [quarter_of(m) for m in (0, 2, 3, 11)] == [1, 1, 2, 4]
    assert exceeds_year(11, 1.5) and not exceeds_year(11, 1)
    assert owners([_task(owner="b"), _task(owner="a"), _task(owner="b"), _task(owner="")]) == ["a", "b"]

def test_filter_search_is_case_insensitive_over_name_description_owner():
    task_filter = TaskFilter(search="ZEN")
    assert task_filter.matches(_task(name="Meeting with Zen"))
    assert task_filter.matches(_task(owner="Sasha (Zen)"))
    assert task_filter.matches(_task(description="zen analytics"))
    assert not task_filter.matches(_task(name="Other"))

def test_filter_combines_criteria():
    task_filter = TaskFilter(types={"dev"}, statuses={"done"}, quarter=2)
    assert task_filter.matches(_task(type="dev", status="done", start_month=3))
    assert not task_filter.matches(_task(type="dev", status="done", start_month=0))
    assert not task_filter.matches(_task(type="prep", status="done", start_month=3))
    assert TaskFilter(months={1}).matches(_task(start_month=0.5, duration=1))

def test_apply_drops_empty_epics_only_when_filtering():
    epics = [{"id": "a", "tasks": [_task(owner="Ann")]}, {"id": "b", "tasks": []}]
    assert [e["id"] for e in TaskFilter().apply(epics)] == ["a", "b"]
    assert [e["id"] for e in TaskFilter(owners={"Ann"}).apply(epics)] == ["a"]
    assert TaskFilter(owners={"Bob"}).apply(epics) == []

def test_quarter_stats_rounds_half_up():
    tasks = [_task(status="done")] + [_task() for _ in range(7)]
    q1 = quarter_stats(tasks)[0]
    assert (q1["total"], q1["completed"], q1["percentage"]) == (8, 1, 13)
    assert quarter_stats([])[3] == {"quarter": 4, "total": 0, "completed": 0, "percentage": 0}

@pytest.fixture
def service(store):
    return RoadmapService(LocalBinding(store))

@pytest.mark.asyncio
async def test_service_seeds_empty_remote_backend():
    posted = {}

    def backend(request):
        table = request.url.path.rsplit("/", 1)[-1]
        if request.method == "POST":
            posted[table] = json.loads(request.content)
            return httpx.Response(201, json=posted[table])
        return httpx.Response(200, json=[])

    binding = RemoteBinding("https://demo.supabase.co", "k", transport=httpx.MockTransport(backend))
    project_id = await RoadmapService(binding).ensure_project()
    await binding.close()

    assert posted["projects"][0]["id"] == project_id
    assert len(posted["epics"]) == 9
    assert len(posted["tasks"]) == 33
    assert {e["project_id"] for e in posted["epics"]} == {project_id}

@pytest.mark.asyncio
async def test_service_reuses_existing_local_project(store, project_id):
    assert await RoadmapService(LocalBinding(store)).ensure_project() == project_id

@pytest.mark.asyncio
async def test_load_epics_nests_ordered_tasks(service, project_id):
    epics = await service.load_epics(project_id)
    assert len(epics) == 9
    assert sum(len(e["tasks"]) for e in epics) == 33
    for epic in epics:
        orders = [t["order_index"] for t in epic["tasks"]]
        assert orders == sorted(orders)
    assert await service.load_epics("nobody") == []

@pytest.mark.asyncio
async def test_save_epic_creates_and_updates(service, project_id):
    created = await service.save_epic(project_id, {"name": "  Growth  ", "type": "monetization", "order_index": None})
    assert created["name"] == "Growth"
    assert created["order_index"] == 9
    assert created["duration"] == 3

    updated = await service.save_epic(project_id, {"id": created["id"], "name": "Renamed"})
    assert updated["name"] == "Renamed"
    assert await service.save_epic(project_id, {"name": "   "}) is None
    assert await service.save_epic(project_id, {"id": "missing", "name": "X"}) is None

@pytest.mark.asyncio
async def test_save_task_inherits_epic_start(service, project_id, epics):
    epic = epics[1]
    created = await service.save_task(epic["id"], {"name": "Follow-up"})
    assert created["start_month"] == epic["start_month"]
    assert created["order_index"] == 5
    assert await service.save_task("missing", {"name": "Orphan"}) is None

@pytest.mark.asyncio
async def test_delete_epic_removes_its_tasks(service, store, epics):
    assert await service.delete_epic(epics[0]["id"]) is True
    assert store.list_tasks([epics[0]["id"]]) == []
    assert await service.delete_epic(epics[0]["id"]) is False

@pytest.mark.asyncio
async def test_cycle_task_status(service, store, epics):
    task = store.list_tasks([epics[3]["id"]])[-1]
    assert task["status"] == "pending"
    statuses = [(await service.cycle_task_status(task["id"]))["status"] for _ in range(3)]
    assert statuses == ["in-progress", "done", "pending"]
    assert await service.cycle_task_status("missing") is None

@pytest.mark.asyncio
async def test_move_through_service(service, store, epics):
    assert await service.move_epic(epics[2]["id"], "up") is True
    assert await service.move_task("missing", "up") is False
    first = await service.binding.first(Query("epics").eq("order_index", 1))
    assert first.data["id"] == epics[2]["id"]
