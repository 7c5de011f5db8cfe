"""
In-process subscriber repository.

Phone numbers are unique. Every mutation runs under one module lock so
conditional updates (register, debit, PIN attempts) are atomic.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from smarthealth.config import settings
from smarthealth.exceptions import DuplicateSubscriberError
from smarthealth.schemas.entity_schema import Language, Subscriber
from smarthealth.utils import new_id, normalize_phone, utcnow

logger = logging.getLogger(__name__)

_subscribers: dict[str, Subscriber] = {}
_by_phone: dict[str, str] = {}
_lock = threading.RLock()


def _trial_window(now: datetime) -> tuple[datetime, datetime]:
    return now, now + timedelta(days=settings.trial.duration_days)


def _copy(subscriber: Optional[Subscriber]) -> Optional[Subscriber]:
    return subscriber.model_copy() if subscriber is not None else None


def get(subscriber_id: str) -> Optional[Subscriber]:
    return _copy(_subscribers.get(subscriber_id))


def find_by_phone(phone: str) -> Optional[Subscriber]:
    subscriber_id = _by_phone.get(normalize_phone(phone))
    return get(subscriber_id) if subscriber_id else None


def get_or_create(phone: str) -> Subscriber:
    """Resolve a subscriber by phone, creating one without a PIN on first contact."""
    phone = normalize_phone(phone)
    with _lock:
        existing = _by_phone.get(phone)
        if existing:
            return _copy(_subscribers[existing])
        now = utcnow()
        trial_start, trial_end = _trial_window(now)
        subscriber = Subscriber(
            id=new_id("SUB"),
            phone=phone,
            language=Language(settings.brand.default_language),
            trial_start=trial_start,
            trial_end=trial_end,
            created_at=now,
        )
        _subscribers[subscriber.id] = subscriber
        _by_phone[phone] = subscriber.id
    logger.info("Subscriber created on first contact: %s", subscriber.id)
    return _copy(subscriber)


def register(phone: str, name: str, pin_hash: str) -> Subscriber:
    """Create a subscriber with credentials, starting the trial now.

    A subscriber created implicitly on first contact (no PIN yet) is
    upgraded in place.

    Raises:
        DuplicateSubscriberError: If the phone already has a PIN.
    """
    phone = normalize_phone(phone)
    with _lock:
        existing_id = _by_phone.get(phone)
        now = utcnow()
        trial_start, trial_end = _trial_window(now)
        if existing_id:
            existing = _subscribers[existing_id]
            if existing.pin_hash:
                raise DuplicateSubscriberError(f"Phone already registered: {existing_id}")
            existing.name = name
            existing.pin_hash = pin_hash
            existing.trial_start = trial_start
            existing.trial_end = trial_end
            logger.info("Subscriber registered: %s (upgraded)", existing_id)
            return _copy(existing)

        subscriber = Subscriber(
            id=new_id("SUB"),
            phone=phone,
            name=name,
            pin_hash=pin_hash,
            language=Language(settings.brand.default_language),
            trial_start=trial_start,
            trial_end=trial_end,
            created_at=now,
        )
        _subscribers[subscriber.id] = subscriber
        _by_phone[phone] = subscriber.id
    logger.info("Subscriber registered: %s", subscriber.id)
    return _copy(subscriber)


def record_failed_pin(subscriber_id: str, now: Optional[datetime] = None) -> Subscriber:
    """Count a wrong PIN, locking the account once the limit is reached."""
    now = now or utcnow()
    with _lock:
        subscriber = _subscribers[subscriber_id]
        subscriber.failed_pin_attempts += 1
        if subscriber.failed_pin_attempts >= settings.session.max_pin_attempts:
            subscriber.locked_until = now + timedelta(minutes=settings.session.pin_lockout_minutes)
            subscriber.failed_pin_attempts = 0
            logger.warning(
                "Subscriber %s locked until %s", subscriber_id, subscriber.locked_until.isoformat()
            )
        return _copy(subscriber)


def reset_pin_attempts(subscriber_id: str) -> None:
    with _lock:
        subscriber = _subscribers[subscriber_id]
        subscriber.failed_pin_attempts = 0
        subscriber.locked_until = None


def debit(subscriber_id: str, amount: float) -> bool:
    """Deduct ``amount`` only if the balance covers it."""
    with _lock:
        subscriber = _subscribers[subscriber_id]
        if subscriber.balance < amount:
            return False
        subscriber.balance -= amount
    logger.info("Balance debited for %s: %s", subscriber_id, amount)
    return True


def credit(subscriber_id: str, amount: float) -> Subscriber:
    with _lock:
        subscriber = _subscribers[subscriber_id]
        subscriber.balance += amount
        return _copy(subscriber)


def increment_consultation_count(subscriber_id: str) -> int:
    with _lock:
        subscriber = _subscribers[subscriber_id]
        subscriber.consultation_count += 1
        return subscriber.consultation_count


def set_language(subscriber_id: str, language: Language) -> None:
    with _lock:
        _subscribers[subscriber_id].language = language


def count() -> int:
    return len(_subscribers)


def reset() -> None:
    with _lock:
        _subscribers.clear()
        _by_phone.clear()
