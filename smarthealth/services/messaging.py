"""
Outbound SMS via Africa's Talking, with a best-effort retry queue.

Flows call ``notify``: it never raises. A failed send is queued and
``process_queue`` (run by the scheduler) retries it up to
``SMS_MAX_ATTEMPTS`` times.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import requests

from smarthealth.config import settings
from smarthealth.exceptions import NotificationError
from smarthealth.utils import new_id, utcnow

logger = logging.getLogger(__name__)

SANDBOX_URL = "https://api.sandbox.africastalking.com/version1/messaging"
PRODUCTION_URL = "https://api.africastalking.com/version1/messaging"
QUEUE_BATCH_SIZE = 10


@dataclass
class QueuedSms:
    """An SMS waiting for another delivery attempt."""
    id: str
    phone: str
    message: str
    attempts: int = 0
    status: str = "pending"  # "pending" | "sent" | "failed"
    created_at: datetime = field(default_factory=utcnow)
    sent_at: Optional[datetime] = None


_queue: dict[str, QueuedSms] = {}
_lock = threading.Lock()


def _api_url() -> str:
    return SANDBOX_URL if settings.messaging.username == "sandbox" else PRODUCTION_URL


def send_sms(phone: str, message: str) -> dict[str, Any]:
    """Deliver one SMS.

    Raises:
        NotificationError: If the gateway is unreachable or rejects the message.
    """
    config = settings.messaging
    if not config.api_key:
        logger.info("SMS gateway not configured, message to %s not sent", phone)
        return {"status": "skipped"}

    data = {"username": config.username, "to": phone, "message": message}
    if config.shortcode:
        data["from"] = config.shortcode
    headers = {
        "apiKey": config.api_key,
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }
    try:
        response = requests.post(_api_url(), data=data, headers=headers, timeout=config.timeout_sec)
    except requests.RequestException as e:
        raise NotificationError(f"SMS gateway unreachable: {e}") from e
    if response.status_code >= 400:
        raise NotificationError(f"SMS gateway returned {response.status_code}: {response.text[:200]}")
    logger.info("SMS sent to %s", phone)
    return response.json()


def queue_sms(phone: str, message: str) -> QueuedSms:
    item = QueuedSms(id=new_id("SMS"), phone=phone, message=message)
    with _lock:
        _queue[item.id] = item
    logger.info("SMS queued for retry: %s", item.id)
    return item


def notify(recipient: str, message: str) -> bool:
    """Best-effort delivery. Returns False when the message was queued instead."""
    try:
        send_sms(recipient, message)
        return True
    except NotificationError as e:
        logger.warning("SMS to %s failed, queueing: %s", recipient, e)
        queue_sms(recipient, message)
        return False


def process_queue() -> dict[str, int]:
    """Retry pending messages, oldest first."""
    max_attempts = settings.messaging.max_attempts
    with _lock:
        pending = sorted(
            (q for q in _queue.values() if q.status == "pending"),
            key=lambda q: q.created_at,
        )[:QUEUE_BATCH_SIZE]

    sent = failed = 0
    for item in pending:
        try:
            send_sms(item.phone, item.message)
        except NotificationError as e:
            item.attempts += 1
            if item.attempts >= max_attempts:
                item.status = "failed"
                failed += 1
                logger.error("SMS %s gave up after %d attempts: %s", item.id, item.attempts, e)
            continue
        item.attempts += 1
        item.status = "sent"
        item.sent_at = utcnow()
        sent += 1

    if pending:
        logger.info("SMS queue processed: %d sent, %d failed, %d attempted", sent, failed, len(pending))
    return {"attempted": len(pending), "sent": sent, "failed": failed}


def queued_messages() -> list[QueuedSms]:
    with _lock:
        return list(_queue.values())


def reset() -> None:
    with _lock:
        _queue.clear()
