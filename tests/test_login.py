"""Tests for PIN login and lockout."""

from datetime import timedelta

from smarthealth.repositories import subscribers
from smarthealth.schemas.channel_schema import ResponseKind
from smarthealth.utils import utcnow
from tests.conftest import PIN, make_subscriber, walk


class TestLogin:
    def test_correct_pin_shows_main_menu(self):
        make_subscriber()
        responses = walk(PIN)
        menu = responses[1]
        assert menu.kind == ResponseKind.CON
        assert "Welcome Jane Wanjiku" in menu.text
        assert "1. Free Trial (3 left)" in menu.text
        assert "2. Paid Consultation" in menu.text
        assert "5. Logout" in menu.text

    def test_menu_shows_expired_trial(self):
        make_subscriber(consultation_count=3)
        menu = walk(PIN)[1]
        assert "1. Free Trial (Expired)" in menu.text

    def test_wrong_pin(self):
        subscriber = make_subscriber()
        responses = walk("9999")
        assert responses[1].kind == ResponseKind.END
        assert responses[1].text.startswith("Incorrect PIN")
        assert "Attempts left: 4" in responses[1].text
        assert subscribers.get(subscriber.id).failed_pin_attempts == 1

    def test_attempts_count_down_across_sessions(self):
        make_subscriber()
        walk("9999", session_id="ATUid_1")
        second = walk("9999", session_id="ATUid_2")[1]
        assert "Attempts left: 3" in second.text

    def test_successful_login_resets_attempts(self):
        subscriber = make_subscriber()
        walk("9999", session_id="ATUid_1")
        walk("8888", session_id="ATUid_2")
        walk(PIN, session_id="ATUid_3")
        assert subscribers.get(subscriber.id).failed_pin_attempts == 0


class TestLockout:
    def _fail(self, times: int) -> list:
        return [walk("9999", session_id=f"ATUid_fail_{i}")[1] for i in range(times)]

    def test_fifth_wrong_pin_locks(self):
        subscriber = make_subscriber()
        answers = self._fail(5)
        assert answers[-1].text.startswith("Account Locked")
        assert "30 minutes" in answers[-1].text
        assert subscribers.get(subscriber.id).is_locked()

    def test_locked_account_rejects_correct_pin(self):
        make_subscriber()
        self._fail(5)
        answer = walk(PIN, session_id="ATUid_after")[1]
        assert answer.text.startswith("Account Locked")

    def test_lock_lifts_after_window(self):
        subscriber = make_subscriber()
        self._fail(5)
        locked_until = subscribers.get(subscriber.id).locked_until
        assert not subscribers.get(subscriber.id).is_locked(locked_until + timedelta(seconds=1))
        assert locked_until > utcnow()
