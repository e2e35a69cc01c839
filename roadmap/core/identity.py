import uuid
from datetime import datetime, timezone

def new_id() -> str:
    return str(uuid.uuid4())

def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-05T10:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
