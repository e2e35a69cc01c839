import logging
from typing import Optional

from roadmap.config.settings import REMOTE_PLACEHOLDERS, Settings
from roadmap.query.base import Binding
from roadmap.query.local import LocalBinding
from roadmap.query.remote import RemoteBinding
from roadmap.store.state_manager import SnapshotStore

logger = logging.getLogger(__name__)

def has_remote_credentials(url: Optional[str], key: Optional[str]) -> bool:
    """True when both values are set and neither is a template placeholder."""
    if not url or not key:
        return False
    return not any(placeholder in value for value in (url, key) for placeholder in REMOTE_PLACEHOLDERS)

def create_binding(settings: Settings, store: Optional[SnapshotStore] = None) -> Binding:
    """Picks the binding once, at startup. There is no fallback between bindings later on."""
    if has_remote_credentials(settings.REMOTE_URL, settings.remote_key_value):
        logger.info(f"Query binding: remote ({settings.REMOTE_URL})")
        return RemoteBinding(settings.REMOTE_URL, settings.remote_key_value, timeout=settings.REMOTE_TIMEOUT)
    if store is None:
        raise ValueError("A local snapshot store is required when no remote backend is configured.")
    logger.info("Query binding: local snapshot store")
    return LocalBinding(store)
