"""
In-memory store for import sessions.

Sessions live for a sliding TTL window: every successful lookup pushes
the expiry forward. Single-process only; a restart drops all sessions.
"""

import threading
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog

from config import settings

logger = structlog.get_logger(__name__)

_cache: dict[str, tuple[datetime, Any]] = {}
_lock = threading.Lock()


def _ttl() -> timedelta:
    return timedelta(minutes=settings.import_session_ttl_minutes)


def new_session_id() -> str:
    return str(uuid.uuid4())


def store_session(session_id: str, session: Any) -> str:
    """Store a session under its id, return the id."""
    with _lock:
        _cache[session_id] = (datetime.now() + _ttl(), session)
        _cleanup_expired()
    return session_id


def retrieve_session(session_id: str) -> Optional[Any]:
    """Session by id, or None if expired/not found. Refreshes the TTL."""
    with _lock:
        entry = _cache.get(session_id)
        if entry is None:
            return None
        expires_at, session = entry
        now = datetime.now()
        if now > expires_at:
            del _cache[session_id]
            logger.info("import_session_expired", session_id=session_id)
            return None
        _cache[session_id] = (now + _ttl(), session)
        return session


def delete_session(session_id: str) -> bool:
    """Remove a session. Returns False if it was not stored."""
    with _lock:
        return _cache.pop(session_id, None) is not None


def clear_sessions() -> None:
    with _lock:
        _cache.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries. Caller holds the lock."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _cache.items() if now > exp]
    for k in expired:
        del _cache[k]
    if expired:
        logger.debug("import_sessions_cleaned_up", expired=len(expired))
