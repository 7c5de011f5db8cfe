"""Tests for new-subscriber registration over USSD."""

from smarthealth.repositories import sessions, subscribers
from smarthealth.schemas.channel_schema import ResponseKind
from smarthealth.security import verify_pin
from tests.conftest import PHONE, PIN, dial, make_subscriber, walk


class TestRegistrationHappyPath:
    def test_first_dial_shows_welcome(self):
        first = dial("")
        assert first.kind == ResponseKind.CON
        assert "You are a new user" in first.text
        assert "Get 3 FREE consultations" in first.text

    def test_name_then_pin_registers(self, sent_sms):
        responses = walk("Jane Wanjiku", PIN)
        assert responses[1].kind == ResponseKind.CON
        assert responses[1].text.startswith("Hello Jane Wanjiku!")
        assert responses[2].kind == ResponseKind.END
        assert responses[2].text.startswith("Registration Successful!")
        assert f"Phone: {PHONE}" in responses[2].text

        subscriber = subscribers.find_by_phone(PHONE)
        assert subscriber.name == "Jane Wanjiku"
        assert verify_pin(PIN, subscriber.pin_hash)
        assert subscriber.in_trial_window()
        assert sent_sms and sent_sms[0][0] == PHONE

    def test_session_closed_after_registration(self):
        walk("Jane Wanjiku", PIN)
        assert sessions.count() == 0

    def test_name_whitespace_normalized(self):
        walk("  Jane    Wanjiku ", PIN)
        assert subscribers.find_by_phone(PHONE).name == "Jane Wanjiku"

    def test_whole_registration_in_one_request(self):
        response = dial(f"Jane Wanjiku*{PIN}", session_id="ATUid_batch")
        assert response.text.startswith("Registration Successful!")


class TestRegistrationRejections:
    def test_short_name(self):
        responses = walk("Al")
        assert responses[1].kind == ResponseKind.END
        assert responses[1].text.startswith("Name Too Short")
        assert "at least 3 characters" in responses[1].text
        assert subscribers.find_by_phone(PHONE) is None

    def test_bad_pin(self):
        responses = walk("Jane Wanjiku", "12ab")
        assert responses[2].text.startswith("Invalid PIN")
        assert subscribers.find_by_phone(PHONE) is None

    def test_three_digit_pin(self):
        responses = walk("Jane Wanjiku", "123")
        assert responses[2].text.startswith("Invalid PIN")

    def test_registered_phone_is_not_duplicated(self):
        existing = make_subscriber()
        response = dial(f"Someone Else*{PIN}", session_id="ATUid_retry")
        assert response.text.startswith("Already Registered")
        assert subscribers.count() == 1
        assert subscribers.find_by_phone(PHONE).name == existing.name

    def test_registered_phone_gets_login(self):
        make_subscriber()
        first = dial("")
        assert "Welcome back Jane Wanjiku" in first.text
