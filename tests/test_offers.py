"""Tests for reward offers."""

from datetime import timedelta

from smarthealth.repositories import offers
from smarthealth.schemas.entity_schema import OfferType
from smarthealth.utils import utcnow
from tests.conftest import make_subscriber


def offer_types(granted):
    return sorted(o.offer_type.value for o in granted)


class TestGrantForCount:
    def test_nothing_below_thresholds(self):
        subscriber = make_subscriber()
        assert offers.grant_for_count(subscriber.id, 1) == []
        assert offers.grant_for_count(subscriber.id, 2) == []

    def test_priority_from_third_consultation(self):
        subscriber = make_subscriber()
        assert offer_types(offers.grant_for_count(subscriber.id, 3)) == ["priority_queue"]

    def test_priority_not_duplicated(self):
        subscriber = make_subscriber()
        offers.grant_for_count(subscriber.id, 3)
        assert offers.grant_for_count(subscriber.id, 4) == []

    def test_discount_every_fifth(self):
        subscriber = make_subscriber()
        offers.grant_for_count(subscriber.id, 3)
        granted = offers.grant_for_count(subscriber.id, 5)
        assert offer_types(granted) == ["discount"]
        assert granted[0].discount_percentage == 20

    def test_tenth_grants_discount_and_free(self):
        subscriber = make_subscriber()
        offers.grant_for_count(subscriber.id, 3)
        assert offer_types(offers.grant_for_count(subscriber.id, 10)) == ["discount", "free_consultation"]


class TestBestOffer:
    def test_free_beats_discount(self):
        subscriber = make_subscriber()
        offers.create(subscriber.id, OfferType.PRIORITY_QUEUE)
        offers.create(subscriber.id, OfferType.DISCOUNT, 20)
        free = offers.create(subscriber.id, OfferType.FREE_CONSULTATION)
        assert offers.get_best_offer(subscriber.id).id == free.id

    def test_applied_offer_skipped(self):
        subscriber = make_subscriber()
        discount = offers.create(subscriber.id, OfferType.DISCOUNT, 20)
        offers.apply(discount.id)
        assert offers.get_best_offer(subscriber.id) is None

    def test_expired_offer_skipped(self):
        subscriber = make_subscriber()
        offers.create(subscriber.id, OfferType.DISCOUNT, 20)
        assert offers.get_best_offer(subscriber.id, now=utcnow() + timedelta(days=31)) is None


class TestApply:
    def test_apply_once(self):
        subscriber = make_subscriber()
        offer = offers.create(subscriber.id, OfferType.FREE_CONSULTATION)
        assert offers.apply(offer.id) is True
        assert offers.apply(offer.id) is False

    def test_apply_unknown(self):
        assert offers.apply("OFR-NOPE") is False

    def test_purge_keeps_applied(self):
        subscriber = make_subscriber()
        used = offers.create(subscriber.id, OfferType.DISCOUNT, 20)
        offers.apply(used.id)
        offers.create(subscriber.id, OfferType.PRIORITY_QUEUE)
        assert offers.purge_expired(utcnow() + timedelta(days=31)) == 1
        assert offers.get(used.id) is not None
