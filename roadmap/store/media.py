"""
Durable media for the serialized roadmap snapshot.

A medium only moves an opaque JSON string in and out; parsing, seeding and
recovery belong to the store. ``swap`` is the conditional write the store
uses for every change: it replaces the payload only while the medium still
holds the one the caller read.
"""
import fcntl
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import redis
from redis.exceptions import WatchError
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from roadmap.db.models import SnapshotRecord
from roadmap.db.session import init_db, make_session_factory

logger = logging.getLogger(__name__)

class SnapshotMedium(ABC):
    @abstractmethod
    def read(self) -> Optional[str]:
        """Raw payload, or None when nothing has been stored yet."""

    @abstractmethod
    def write(self, payload: str) -> None:
        ...

    @abstractmethod
    def swap(self, expected: Optional[str], payload: str) -> bool:
        """Writes ``payload`` if the stored value still equals ``expected``; False otherwise."""

    @abstractmethod
    def clear(self) -> None:
        ...

class MemoryMedium(SnapshotMedium):
    def __init__(self, payload: Optional[str] = None):
        self.payload = payload
        self.writes = 0

    def read(self) -> Optional[str]:
        return self.payload

    def write(self, payload: str) -> None:
        self.payload = payload
        self.writes += 1

    def swap(self, expected: Optional[str], payload: str) -> bool:
        if self.payload != expected:
            return False
        self.write(payload)
        return True

    def clear(self) -> None:
        self.payload = None

class FileMedium(SnapshotMedium):
    def __init__(self, path):
        self.path = Path(path)
        self.lock_path = self.path.with_name(f"{self.path.name}.lock")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open("a+", encoding="utf-8") as lock_handle:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _replace(self, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def read(self) -> Optional[str]:
        return self._read()

    def write(self, payload: str) -> None:
        with self._locked():
            self._replace(payload)

    def swap(self, expected: Optional[str], payload: str) -> bool:
        with self._locked():
            if self._read() != expected:
                return False
            self._replace(payload)
            return True

    def clear(self) -> None:
        with self._locked():
            if self.path.exists():
                self.path.unlink()

class SqlMedium(SnapshotMedium):
    """Keeps the snapshot as one row of the ``snapshots`` table."""

    def __init__(self, engine: Engine, key: str):
        self.key = key
        init_db(engine)
        self.session_factory = make_session_factory(engine)

    def read(self) -> Optional[str]:
        with self.session_factory() as db:
            record = db.get(SnapshotRecord, self.key)
            return record.payload if record else None

    def write(self, payload: str) -> None:
        with self.session_factory() as db:
            record = db.get(SnapshotRecord, self.key)
            if record is None:
                db.add(SnapshotRecord(key=self.key, payload=payload))
            else:
                record.payload = payload
            db.commit()

    def swap(self, expected: Optional[str], payload: str) -> bool:
        with self.session_factory() as db:
            if expected is None:
                db.add(SnapshotRecord(key=self.key, payload=payload))
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    return False
                return True
            result = db.execute(
                update(SnapshotRecord)
                .where(SnapshotRecord.key == self.key, SnapshotRecord.payload == expected)
                .values(payload=payload)
            )
            db.commit()
            return result.rowcount == 1

    def clear(self) -> None:
        with self.session_factory() as db:
            record = db.get(SnapshotRecord, self.key)
            if record is not None:
                db.delete(record)
                db.commit()

class RedisMedium(SnapshotMedium):
    def __init__(self, client: redis.Redis, key: str):
        self.client = client
        self.key = key

    def read(self) -> Optional[str]:
        return self.client.get(self.key)

    def write(self, payload: str) -> None:
        self.client.set(self.key, payload)

    def swap(self, expected: Optional[str], payload: str) -> bool:
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(self.key)
                if pipe.get(self.key) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(self.key, payload)
                pipe.execute()
                return True
            except WatchError:
                return False

    def clear(self) -> None:
        self.client.delete(self.key)

def create_medium(settings) -> SnapshotMedium:
    """Builds the medium named by ``settings.STORE_MEDIUM``."""
    kind = settings.STORE_MEDIUM
    if kind == "memory":
        medium = MemoryMedium()
    elif kind == "file":
        medium = FileMedium(settings.SNAPSHOT_FILE)
    elif kind == "redis":
        from roadmap.core.redis_client import create_redis_client
        medium = RedisMedium(create_redis_client(str(settings.REDIS_URL)), settings.KV_STORE_KEY)
    elif kind == "sql":
        from roadmap.db.session import make_engine
        medium = SqlMedium(make_engine(settings.DATABASE_URL), settings.KV_STORE_KEY)
    else:
        raise ValueError(f"Unknown store medium: {kind}")
    logger.info(f"Snapshot medium: {kind}")
    return medium
