from typing import Optional

class RoadmapError(Exception):
    """Base class for roadmap core errors."""

class ReferentialIntegrityError(RoadmapError, ValueError):
    """A record points at a parent that does not exist."""

class SnapshotIntegrityError(RoadmapError, ValueError):
    """A full snapshot is not internally consistent and was not written."""

class ImportValidationError(RoadmapError, ValueError):
    """Imported payload does not have the expected shape."""

class RemoteBackendError(RoadmapError):
    """Custom exception for remote backend (REST) failures."""
    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        super().__init__(f"Remote backend error [{status if status is not None else 'transport'}]: {message}")

class WriteConflictError(RoadmapError):
    """Concurrent writers kept replacing the snapshot; the change was not applied."""
