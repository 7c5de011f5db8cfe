"""
Session store with per-session locking.

Sessions are kept as serialized JSON records keyed by the channel's session
id, so callers always work on their own copy and persist changes with an
explicit ``upsert``. Alongside the records the store keeps:

- one lock per session id, held for the duration of one webhook
- a short-lived replay cache of terminal responses, so a gateway retry of
  a request that already ended its session gets the same answer
- parked payments: the paid-flow payload of a mobile push waiting for the
  subscriber to re-dial, keyed by subscriber because the re-dial arrives
  under a new session id
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from pydantic import ValidationError

from smarthealth.config import settings
from smarthealth.exceptions import SessionBusyError, SessionStoreError
from smarthealth.schemas.session_schema import PaidConsultationPayload, Session
from smarthealth.utils import utcnow

logger = logging.getLogger(__name__)

_sessions: dict[str, str] = {}
_replays: dict[tuple[str, str], tuple[str, datetime]] = {}
_parked: dict[str, str] = {}
_registry_lock = threading.Lock()


class _KeyLock:
    """A session's lock and the number of deliveries holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


_locks: dict[str, _KeyLock] = {}


@contextmanager
def session_lock(session_id: str, timeout: Optional[float] = None) -> Iterator[None]:
    """Serialize every delivery for ``session_id``.

    Raises:
        SessionBusyError: If the lock is not acquired within the timeout.
    """
    with _registry_lock:
        entry = _locks.setdefault(session_id, _KeyLock())
        entry.users += 1
    wait = settings.session.lock_timeout_sec if timeout is None else timeout
    try:
        if not entry.lock.acquire(timeout=wait):
            raise SessionBusyError(f"Session {session_id} is busy")
        try:
            yield
        finally:
            entry.lock.release()
    finally:
        with _registry_lock:
            entry.users -= 1


def get(session_id: str) -> Optional[Session]:
    """Load a session.

    Raises:
        SessionStoreError: If the stored record no longer parses.
    """
    raw = _sessions.get(session_id)
    if raw is None:
        return None
    try:
        return Session.model_validate_json(raw)
    except ValidationError as e:
        raise SessionStoreError(f"Session {session_id} is unreadable") from e


def upsert(session: Session) -> Session:
    session.updated_at = utcnow()
    _sessions[session.session_id] = session.model_dump_json()
    return session


def delete(session_id: str) -> bool:
    removed = _sessions.pop(session_id, None) is not None
    if removed:
        logger.debug("Session deleted: %s", session_id)
    return removed


def count() -> int:
    return len(_sessions)


def list_inactive(cutoff: datetime) -> list[Session]:
    """Sessions whose last update happened before ``cutoff``."""
    stale = []
    for raw in list(_sessions.values()):
        session = Session.model_validate_json(raw)
        if session.updated_at < cutoff:
            stale.append(session)
    return stale


# --- Replay cache ---

def remember_response(session_id: str, raw_text: str, body: str) -> None:
    _replays[(session_id, raw_text)] = (body, utcnow())


def recall_response(session_id: str, raw_text: str) -> Optional[str]:
    """Return a cached terminal response if it is still fresh."""
    entry = _replays.get((session_id, raw_text))
    if entry is None:
        return None
    body, stored_at = entry
    if utcnow() - stored_at > timedelta(seconds=settings.session.replay_cache_seconds):
        _replays.pop((session_id, raw_text), None)
        return None
    return body


def purge_replays(now: Optional[datetime] = None) -> int:
    cutoff = (now or utcnow()) - timedelta(seconds=settings.session.replay_cache_seconds)
    expired = [key for key, (_, stored_at) in _replays.items() if stored_at < cutoff]
    for key in expired:
        _replays.pop(key, None)
    return len(expired)


def purge_idle_locks() -> int:
    """Drop locks of sessions that no longer exist and that no delivery uses."""
    removed = 0
    with _registry_lock:
        for session_id in list(_locks):
            if session_id not in _sessions and _locks[session_id].users == 0:
                del _locks[session_id]
                removed += 1
    return removed


# --- Parked payments ---

def park_payment(subscriber_id: str, payload: PaidConsultationPayload) -> None:
    _parked[subscriber_id] = payload.model_dump_json()
    logger.info("Payment parked for subscriber %s (case %s)", subscriber_id, payload.case_id)


def parked_payment(subscriber_id: str) -> Optional[PaidConsultationPayload]:
    raw = _parked.get(subscriber_id)
    if raw is None:
        return None
    return PaidConsultationPayload.model_validate_json(raw)


def drop_parked_payment(subscriber_id: str) -> bool:
    return _parked.pop(subscriber_id, None) is not None


def parked_payments() -> dict[str, PaidConsultationPayload]:
    return {
        subscriber_id: PaidConsultationPayload.model_validate_json(raw)
        for subscriber_id, raw in list(_parked.items())
    }


def reset() -> None:
    """Clear all sessions, replays, parked payments and locks."""
    _sessions.clear()
    _replays.clear()
    _parked.clear()
    with _registry_lock:
        _locks.clear()
