"""Shared test fixtures and helpers."""

import pytest

from smarthealth.conversation.state_machine import SessionStateMachine, UssdStep
from smarthealth.flows import handle_ussd
from smarthealth.repositories import (
    call_queue,
    cases,
    doctors,
    offers,
    sessions,
    subscribers,
    transactions,
)
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import Subscriber
from smarthealth.security import hash_pin
from smarthealth.services import messaging

PHONE = "+254700000001"
PIN = "1234"
SYMPTOMS = "Headache and fever for the last two days"


@pytest.fixture(autouse=True)
def clean_stores():
    """Every test starts with empty stores and the default doctor roster."""
    for repo in (sessions, subscribers, doctors, cases, offers, transactions, call_queue, messaging):
        repo.reset()
    doctors.seed_defaults()
    yield
    for repo in (sessions, subscribers, doctors, cases, offers, transactions, call_queue, messaging):
        repo.reset()


@pytest.fixture(autouse=True)
def sent_sms(monkeypatch) -> list[tuple[str, str]]:
    """Capture outbound SMS instead of calling the gateway."""
    outbox: list[tuple[str, str]] = []

    def fake_send(phone: str, message: str) -> dict:
        outbox.append((phone, message))
        return {"status": "sent"}

    monkeypatch.setattr(messaging, "send_sms", fake_send)
    return outbox


@pytest.fixture
def state_machine():
    return SessionStateMachine(UssdStep.LOGIN_PIN)


def make_subscriber(
    phone: str = PHONE,
    name: str = "Jane Wanjiku",
    pin: str = PIN,
    balance: float = 0.0,
    consultation_count: int = 0,
) -> Subscriber:
    """Register a subscriber directly in the repository."""
    subscriber = subscribers.register(phone, name, hash_pin(pin))
    if balance:
        subscribers.credit(subscriber.id, balance)
    for _ in range(consultation_count):
        subscribers.increment_consultation_count(subscriber.id)
    return subscribers.get(subscriber.id)


def dial(text: str, session_id: str = "ATUid_test", phone: str = PHONE) -> UssdResponse:
    """One gateway round trip carrying the accumulated ``text``."""
    return handle_ussd(session_id, "*384*34153#", phone, text)


def walk(*inputs: str, session_id: str = "ATUid_test", phone: str = PHONE) -> list[UssdResponse]:
    """Dial, then send each input as its own round trip, like a handset does."""
    responses = [dial("", session_id, phone)]
    typed: list[str] = []
    for value in inputs:
        typed.append(value)
        responses.append(dial("*".join(typed), session_id, phone))
    return responses


def only_case(subscriber_id: str):
    """The single case of a subscriber."""
    matches = cases.list_for_subscriber(subscriber_id)
    assert len(matches) == 1, matches
    return matches[0]
