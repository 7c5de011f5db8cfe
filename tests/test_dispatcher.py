"""Tests for USSD request dispatch: retries, replays and request isolation."""

import threading

from smarthealth.conversation.state_machine import UssdStep
from smarthealth.flows import get_registered_options, handle_ussd
from smarthealth.repositories import cases, sessions, subscribers
from smarthealth.schemas.channel_schema import ResponseKind
from smarthealth.schemas.session_schema import Channel, Session
from tests.conftest import PHONE, PIN, SYMPTOMS, dial, make_subscriber, only_case, walk


class TestRegistry:
    def test_menu_options_registered(self):
        assert get_registered_options() == ["trial", "paid", "history", "language", "logout"]


class TestDuplicateDelivery:
    def test_repeated_con_request_returns_same_response(self):
        make_subscriber()
        menu = walk(PIN)[1]
        again = dial(PIN)
        assert again == menu
        assert sessions.get("ATUid_test").consumed == 1

    def test_repeated_dial_returns_prompt(self):
        make_subscriber()
        first = dial("")
        assert dial("") == first

    def test_terminal_request_replayed_without_side_effects(self):
        subscriber = make_subscriber()
        answer = walk(PIN, "1", SYMPTOMS)[3]
        replay = dial(f"{PIN}*1*{SYMPTOMS}")
        assert replay == answer
        only_case(subscriber.id)
        assert subscribers.get(subscriber.id).consultation_count == 1

    def test_concurrent_duplicates_processed_once(self):
        subscriber = make_subscriber()
        walk(PIN, "1")
        text = f"{PIN}*1*{SYMPTOMS}"
        results = []

        def deliver():
            results.append(dial(text))

        threads = [threading.Thread(target=deliver) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 4
        assert len({r.body for r in results}) == 1
        only_case(subscriber.id)


class TestInputHistory:
    def test_several_new_tokens_in_one_request(self):
        make_subscriber()
        answer = dial(f"{PIN}*3", session_id="ATUid_batch")
        assert answer.kind == ResponseKind.END
        assert "No consultation history yet" in answer.text

    def test_shrinking_history_closes_session(self):
        make_subscriber()
        walk(PIN, "2")
        answer = dial(PIN)
        assert answer.kind == ResponseKind.END
        assert answer.text.startswith("Invalid Option")
        assert sessions.get("ATUid_test") is None

    def test_sessions_are_isolated(self):
        make_subscriber()
        make_subscriber(phone="+254700000002", name="Peter Kamau")
        walk(PIN, "2", session_id="ATUid_a")
        menu = walk(PIN, session_id="ATUid_b", phone="+254700000002")[1]
        assert "Welcome Peter Kamau" in menu.text
        assert sessions.get("ATUid_a").step == UssdStep.PAID_SELECT_DOCTOR


class TestRequestIsolation:
    def test_unauthenticated_session_rejected_without_writes(self):
        subscriber = make_subscriber()
        forged = Session(
            session_id="ATUid_forged",
            channel=Channel.USSD,
            subscriber_phone=PHONE,
            subscriber_id=subscriber.id,
            authenticated=False,
            step=UssdStep.MAIN_MENU,
            consumed=1,
            last_response="CON menu",
        )
        sessions.upsert(forged)
        before = sessions.get("ATUid_forged")

        answer = dial(f"{PIN}*1", session_id="ATUid_forged")
        assert answer.text.startswith("Not Logged In")
        after = sessions.get("ATUid_forged")
        assert after.step == UssdStep.MAIN_MENU
        assert after.consumed == 1
        assert after.updated_at == before.updated_at
        assert cases.count() == 0

    def test_unreadable_session_answers_service_unavailable(self):
        make_subscriber()
        sessions._sessions["ATUid_broken"] = '{"session_id": "ATUid_broken"}'
        answer = dial(PIN, session_id="ATUid_broken")
        assert answer.kind == ResponseKind.END
        assert answer.text.startswith("Service Unavailable")

    def test_unexpected_error_answers_service_unavailable(self, monkeypatch):
        def boom(phone):
            raise RuntimeError("store offline")

        monkeypatch.setattr(subscribers, "find_by_phone", boom)
        answer = handle_ussd("ATUid_err", "*384*34153#", PHONE, "")
        assert answer.text.startswith("Service Unavailable")


class TestSessionLock:
    def test_held_lock_survives_purge(self):
        entered = threading.Event()
        release = threading.Event()

        def hold():
            with sessions.session_lock("ATUid_gone"):
                entered.set()
                release.wait(5)

        holder = threading.Thread(target=hold)
        holder.start()
        assert entered.wait(5)
        assert sessions.purge_idle_locks() == 0
        release.set()
        holder.join()
        assert sessions.purge_idle_locks() == 1

    def test_deliveries_stay_serialized_while_locks_are_purged(self):
        inside: list[int] = []
        overlaps: list[int] = []
        finished = threading.Event()

        def deliver():
            for _ in range(200):
                with sessions.session_lock("ATUid_gone"):
                    inside.append(1)
                    if len(inside) > 1:
                        overlaps.append(len(inside))
                    inside.pop()

        def purge():
            while not finished.is_set():
                sessions.purge_idle_locks()

        purger = threading.Thread(target=purge)
        workers = [threading.Thread(target=deliver) for _ in range(4)]
        purger.start()
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        finished.set()
        purger.join()

        assert overlaps == []
