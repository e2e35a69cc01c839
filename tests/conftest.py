import itertools

import pytest

from roadmap.store.media import MemoryMedium
from roadmap.store.state_manager import SnapshotStore

class TickingClock:
    """Every call returns a later timestamp."""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2026-01-01T00:00:00.{self.ticks:03d}Z"

class SequentialIds:
    def __init__(self, prefix: str = "id"):
        self.counter = itertools.count(1)
        self.prefix = prefix

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self.counter)}"

@pytest.fixture
def clock():
    return TickingClock()

@pytest.fixture
def ids():
    return SequentialIds()

@pytest.fixture
def medium():
    return MemoryMedium()

@pytest.fixture
def store(medium, clock, ids):
    return SnapshotStore(medium, clock=clock, id_factory=ids)

@pytest.fixture
def project_id(store):
    return store.get_project_id()

@pytest.fixture
def epics(store, project_id):
    return store.list_epics(project_id)
