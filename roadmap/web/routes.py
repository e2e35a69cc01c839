from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Security, status
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from roadmap.board.filters import TaskFilter, owners, quarter_stats
from roadmap.board.service import RoadmapService
from roadmap.core.errors import RemoteBackendError, RoadmapError, WriteConflictError
from roadmap.store.schemas import (
    EpicCreate, EpicUpdate, EpicWithTasks, MoveInput, Project, Snapshot, TaskCreate, TaskUpdate,
)
from roadmap.store.state_manager import SnapshotStore
from roadmap.transfer.exporter import export_csv, export_json
from roadmap.transfer.importer import import_snapshot

router = APIRouter()
security = HTTPBearer(auto_error=False)

async def auth(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Security(security)):
    secret = request.app.state.settings.ROADMAP_API_SECRET
    if secret is None:
        return True
    if credentials is None or credentials.scheme.lower() != "bearer" or credentials.credentials != secret.get_secret_value():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return True

def get_service(request: Request) -> RoadmapService:
    return request.app.state.service

def get_local_store(request: Request) -> SnapshotStore:
    store = request.app.state.store
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This operation needs the local store binding; a remote backend is active.",
        )
    return store

# === Exception Handler Helper ===
def handle_core_exception(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, WriteConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, RemoteBackendError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if isinstance(e, (RoadmapError, ValueError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Internal server error: {str(e)}")

# === Reads ===

@router.get("/project", response_model=Project)
async def get_project_route(service: RoadmapService = Depends(get_service)):
    try:
        await service.ensure_project()
        return await service.get_project()
    except Exception as e:
        handle_core_exception(e)

@router.get("/state", response_model=Snapshot)
async def get_state_route(store: SnapshotStore = Depends(get_local_store)):
    return store.get_snapshot()

@router.get("/epics", response_model=List[EpicWithTasks])
async def list_epics_route(
    search: str = "",
    types: List[str] = Query([]),
    statuses: List[str] = Query([]),
    owner: List[str] = Query([]),
    quarter: Optional[int] = Query(None, ge=1, le=4),
    months: List[int] = Query([]),
    service: RoadmapService = Depends(get_service),
):
    task_filter = TaskFilter(
        search=search, types=set(types), statuses=set(statuses), owners=set(owner),
        quarter=quarter, months=set(months),
    )
    try:
        project_id = await service.ensure_project()
        return task_filter.apply(await service.load_epics(project_id))
    except Exception as e:
        handle_core_exception(e)

@router.get("/stats")
async def stats_route(service: RoadmapService = Depends(get_service)):
    try:
        project_id = await service.ensure_project()
        tasks = [task for epic in await service.load_epics(project_id) for task in epic["tasks"]]
        return {
            "total": len(tasks),
            "done": sum(1 for t in tasks if t["status"] == "done"),
            "in_progress": sum(1 for t in tasks if t["status"] == "in-progress"),
            "milestones": sum(1 for t in tasks if t["type"] == "milestone"),
            "owners": owners(tasks),
            "quarters": quarter_stats(tasks),
        }
    except Exception as e:
        handle_core_exception(e)

# === Epics ===

@router.post("/epics", dependencies=[Depends(auth)], status_code=status.HTTP_201_CREATED)
async def create_epic_route(payload: EpicCreate, service: RoadmapService = Depends(get_service)):
    try:
        project_id = await service.ensure_project()
        created = await service.save_epic(project_id, payload.model_dump(mode="json"))
    except Exception as e:
        handle_core_exception(e)
    if created is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Epic name must not be blank.")
    return created

@router.patch("/epics/{epic_id}", dependencies=[Depends(auth)])
async def update_epic_route(epic_id: str, payload: EpicUpdate, service: RoadmapService = Depends(get_service)):
    try:
        project_id = await service.ensure_project()
        updated = await service.save_epic(project_id, {**payload.model_dump(mode="json", exclude_none=True), "id": epic_id})
    except Exception as e:
        handle_core_exception(e)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Epic {epic_id} not found.")
    return updated

@router.delete("/epics/{epic_id}", dependencies=[Depends(auth)], status_code=status.HTTP_204_NO_CONTENT)
async def delete_epic_route(epic_id: str, service: RoadmapService = Depends(get_service)):
    try:
        removed = await service.delete_epic(epic_id)
    except Exception as e:
        handle_core_exception(e)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Epic {epic_id} not found.")

@router.post("/epics/{epic_id}/move", dependencies=[Depends(auth)])
async def move_epic_route(epic_id: str, payload: MoveInput, service: RoadmapService = Depends(get_service)):
    try:
        return {"moved": await service.move_epic(epic_id, payload.direction)}
    except Exception as e:
        handle_core_exception(e)

# === Tasks ===

@router.post("/tasks", dependencies=[Depends(auth)], status_code=status.HTTP_201_CREATED)
async def create_task_route(payload: TaskCreate, service: RoadmapService = Depends(get_service)):
    fields = payload.model_dump(mode="json")
    epic_id = fields.pop("epic_id")
    try:
        created = await service.save_task(epic_id, fields)
    except Exception as e:
        handle_core_exception(e)
    if created is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Epic {epic_id} not found.")
    return created

@router.patch("/tasks/{task_id}", dependencies=[Depends(auth)])
async def update_task_route(task_id: str, payload: TaskUpdate, service: RoadmapService = Depends(get_service)):
    fields = payload.model_dump(mode="json", exclude_none=True)
    try:
        current = await service.get_task(task_id)
        if current is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {task_id} not found.")
        epic_id = fields.pop("epic_id", current["epic_id"])
        updated = await service.save_task(epic_id, {**fields, "id": task_id})
    except Exception as e:
        handle_core_exception(e)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Epic {epic_id} not found.")
    return updated

@router.delete("/tasks/{task_id}", dependencies=[Depends(auth)], status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_route(task_id: str, service: RoadmapService = Depends(get_service)):
    try:
        removed = await service.delete_task(task_id)
    except Exception as e:
        handle_core_exception(e)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {task_id} not found.")

@router.post("/tasks/{task_id}/move", dependencies=[Depends(auth)])
async def move_task_route(task_id: str, payload: MoveInput, service: RoadmapService = Depends(get_service)):
    try:
        return {"moved": await service.move_task(task_id, payload.direction)}
    except Exception as e:
        handle_core_exception(e)

@router.post("/tasks/{task_id}/cycle-status", dependencies=[Depends(auth)])
async def cycle_task_status_route(task_id: str, service: RoadmapService = Depends(get_service)):
    try:
        updated = await service.cycle_task_status(task_id)
    except Exception as e:
        handle_core_exception(e)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {task_id} not found.")
    return updated

# === Import / export / reset ===

@router.post("/import", dependencies=[Depends(auth)])
async def import_route(payload: Any = Body(...), store: SnapshotStore = Depends(get_local_store)):
    try:
        snapshot = import_snapshot(store, payload)
    except Exception as e:
        handle_core_exception(e)
    return {
        "message": "Import applied",
        "project": snapshot["project"]["name"],
        "epics": len(snapshot["epics"]),
        "tasks": len(snapshot["tasks"]),
    }

async def _export_source(service: RoadmapService):
    project_id = await service.ensure_project()
    project = await service.get_project()
    return project["name"], await service.load_epics(project_id)

@router.get("/export.json")
async def export_json_route(service: RoadmapService = Depends(get_service)):
    try:
        project_name, epics = await _export_source(service)
    except Exception as e:
        handle_core_exception(e)
    return export_json(project_name, epics)

@router.get("/export.csv", response_class=PlainTextResponse)
async def export_csv_route(service: RoadmapService = Depends(get_service)):
    try:
        _, epics = await _export_source(service)
    except Exception as e:
        handle_core_exception(e)
    return PlainTextResponse(export_csv(epics), media_type="text/csv; charset=utf-8")

@router.post("/reset", dependencies=[Depends(auth)])
async def reset_route(store: SnapshotStore = Depends(get_local_store)):
    snapshot = store.reset_store(store.get_project_id())
    return {"message": "Reset to seed data", "epics": len(snapshot["epics"]), "tasks": len(snapshot["tasks"])}
