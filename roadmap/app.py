import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roadmap.board.service import RoadmapService
from roadmap.config.settings import Settings, get_settings
from roadmap.query.base import Binding
from roadmap.query.factory import create_binding, has_remote_credentials
from roadmap.store.media import create_medium
from roadmap.store.state_manager import SnapshotStore
from roadmap.web.routes import router as roadmap_router

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    print("=" * 50)
    print("🚀 Roadmap API Starting...")
    print("=" * 50)

    try:
        project_id = await app.state.service.ensure_project()
        print(f"✅ {app.state.binding.name} binding ready (project {project_id})")
    except Exception as e:
        print(f"❌ FATAL: Roadmap backend unavailable. Error: {e}")
        raise

    print("✨ Roadmap API is ready!")
    print("=" * 50)

    yield

    await app.state.binding.close()
    print("🛑 Roadmap API Stopped.")

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SnapshotStore] = None,
    binding: Optional[Binding] = None,
) -> FastAPI:
    """
    Builds the app with an explicitly constructed store and binding.
    Both are chosen once here and kept for the lifetime of the process.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    remote = has_remote_credentials(settings.REMOTE_URL, settings.remote_key_value)
    if store is None and not remote:
        store = SnapshotStore(create_medium(settings))
    binding = binding or create_binding(settings, store)

    app = FastAPI(title="Roadmap API", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if binding.name == "local" else None
    app.state.binding = binding
    app.state.service = RoadmapService(binding)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(roadmap_router, prefix="/roadmap", tags=["Roadmap"])

    # Health Check
    @app.get("/health")
    def health():
        return {"status": "ok", "version": VERSION, "binding": binding.name}

    return app
