"""
Reward offers keyed on consultation-count thresholds.

Offers are one-shot: ``apply`` flips ``applied`` under the module lock
and only succeeds once.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from smarthealth.config import settings
from smarthealth.schemas.entity_schema import Offer, OfferType
from smarthealth.utils import new_id, utcnow

logger = logging.getLogger(__name__)

# Highest priority first
OFFER_PRIORITY: list[OfferType] = [
    OfferType.FREE_CONSULTATION,
    OfferType.DISCOUNT,
    OfferType.PRIORITY_QUEUE,
]

_offers: dict[str, Offer] = {}
_lock = threading.RLock()


def create(
    subscriber_id: str,
    offer_type: OfferType,
    discount_percentage: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Offer:
    now = now or utcnow()
    offer = Offer(
        id=new_id("OFR"),
        subscriber_id=subscriber_id,
        offer_type=offer_type,
        discount_percentage=discount_percentage,
        expiry=now + timedelta(days=settings.offers.expiry_days),
        created_at=now,
    )
    with _lock:
        _offers[offer.id] = offer
    logger.info("Offer granted: %s (%s) to %s", offer.id, offer_type.value, subscriber_id)
    return offer.model_copy()


def get(offer_id: str) -> Optional[Offer]:
    offer = _offers.get(offer_id)
    return offer.model_copy() if offer else None


def list_active(subscriber_id: str, now: Optional[datetime] = None) -> list[Offer]:
    return [
        o.model_copy() for o in _offers.values()
        if o.subscriber_id == subscriber_id and o.is_active(now)
    ]


def get_best_offer(subscriber_id: str, now: Optional[datetime] = None) -> Optional[Offer]:
    """Best unapplied, unexpired offer: free > discount > priority queue."""
    active = list_active(subscriber_id, now)
    if not active:
        return None
    return min(active, key=lambda o: (OFFER_PRIORITY.index(o.offer_type), o.created_at))


def apply(offer_id: str) -> bool:
    """Consume an offer. Returns False if it was already applied."""
    with _lock:
        offer = _offers.get(offer_id)
        if offer is None or offer.applied:
            return False
        offer.applied = True
    logger.info("Offer applied: %s", offer_id)
    return True


def grant_for_count(
    subscriber_id: str, consultation_count: int, now: Optional[datetime] = None
) -> list[Offer]:
    """Create the offers earned by reaching ``consultation_count``."""
    rules = settings.offers
    granted: list[Offer] = []
    if consultation_count <= 0:
        return granted

    if consultation_count % rules.consultations_for_discount == 0:
        granted.append(create(
            subscriber_id, OfferType.DISCOUNT, rules.discount_percentage, now=now,
        ))
    if consultation_count % rules.consultations_for_free == 0:
        granted.append(create(subscriber_id, OfferType.FREE_CONSULTATION, now=now))
    if consultation_count >= rules.consultations_for_priority:
        has_priority = any(
            o.offer_type == OfferType.PRIORITY_QUEUE for o in list_active(subscriber_id, now)
        )
        if not has_priority:
            granted.append(create(subscriber_id, OfferType.PRIORITY_QUEUE, now=now))
    return granted


def purge_expired(now: Optional[datetime] = None) -> int:
    """Delete expired offers that were never applied."""
    now = now or utcnow()
    with _lock:
        expired = [oid for oid, o in _offers.items() if not o.applied and now > o.expiry]
        for oid in expired:
            del _offers[oid]
    if expired:
        logger.info("Expired offers removed: %d", len(expired))
    return len(expired)


def list_for_subscriber(subscriber_id: str) -> list[Offer]:
    return [o.model_copy() for o in _offers.values() if o.subscriber_id == subscriber_id]


def reset() -> None:
    with _lock:
        _offers.clear()
