"""
Finite state machines for the USSD and voice session protocols.

Each channel has a closed set of steps and an explicit transition table.
Flows never assign a step directly: they fire a trigger, and the machine
either moves to the next step or raises ``InvalidTransitionError``. This
keeps the whole protocol testable without HTTP.

Usage:
    sm = SessionStateMachine(UssdStep.LOGIN_PIN)
    sm.transition(TransitionTrigger.PIN_ACCEPTED)
    assert sm.current_state == UssdStep.MAIN_MENU
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class UssdStep(str, Enum):
    """Steps of a USSD session."""
    REGISTRATION_NAME = "registration_name"
    REGISTRATION_PIN = "registration_pin"
    LOGIN_PIN = "login_pin"
    MAIN_MENU = "main_menu"
    TRIAL_SYMPTOMS = "trial_symptoms"
    PAID_SELECT_DOCTOR = "paid_select_doctor"
    PAID_SELECT_PAYMENT = "paid_select_payment"
    PAID_SYMPTOMS = "paid_symptoms"
    LANGUAGE_SELECT = "language_select"
    CLOSED = "closed"


class VoiceStep(str, Enum):
    """Steps of a voice call session."""
    INCOMING = "voice_incoming"
    DOCTOR_SELECTION = "doctor_selection"
    TRIAL_RECORDING = "trial_recording"
    PAID_RECORDING = "paid_recording"
    QUEUED = "queued"
    WAITING = "waiting"
    BRIDGED = "bridged"
    REJECTED = "rejected"
    COMPLETED = "completed"


Step = Union[UssdStep, VoiceStep]


class TransitionTrigger(str, Enum):
    """Events that cause step transitions."""
    # --- USSD onboarding ---
    NAME_ACCEPTED = "name_accepted"
    SUBSCRIBER_CREATED = "subscriber_created"
    PIN_ACCEPTED = "pin_accepted"

    # --- Menu selection (both channels) ---
    SELECT_TRIAL = "select_trial"
    SELECT_PAID = "select_paid"
    SELECT_LANGUAGE = "select_language"

    # --- Paid consultation ---
    DOCTOR_SELECTED = "doctor_selected"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_BACK = "payment_back"
    PAYMENT_RESUMED = "payment_resumed"

    # --- Voice queue ---
    RECORDING_RECEIVED = "recording_received"
    DOCTOR_NOTIFIED = "doctor_notified"
    STILL_WAITING = "still_waiting"
    DOCTOR_ACCEPTED = "doctor_accepted"
    DOCTOR_UNAVAILABLE = "doctor_unavailable"

    # --- Terminal ---
    SESSION_ENDED = "session_ended"
    CALL_ENDED = "call_ended"


@dataclass
class Transition:
    """A single valid step transition."""
    from_state: Step
    to_state: Step
    trigger: TransitionTrigger
    guard: Optional[Callable[[], bool]] = None


@dataclass
class StateEntry:
    """Recorded history entry for a step visit."""
    state: Step
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current step."""


USSD_TRANSITIONS: list[Transition] = [
    # --- Registration ---
    Transition(UssdStep.REGISTRATION_NAME, UssdStep.REGISTRATION_PIN,
               TransitionTrigger.NAME_ACCEPTED),
    Transition(UssdStep.REGISTRATION_PIN, UssdStep.CLOSED,
               TransitionTrigger.SUBSCRIBER_CREATED),

    # --- Login ---
    Transition(UssdStep.LOGIN_PIN, UssdStep.MAIN_MENU,
               TransitionTrigger.PIN_ACCEPTED),

    # --- Main menu routing ---
    Transition(UssdStep.MAIN_MENU, UssdStep.TRIAL_SYMPTOMS,
               TransitionTrigger.SELECT_TRIAL),
    Transition(UssdStep.MAIN_MENU, UssdStep.PAID_SELECT_DOCTOR,
               TransitionTrigger.SELECT_PAID),
    Transition(UssdStep.MAIN_MENU, UssdStep.LANGUAGE_SELECT,
               TransitionTrigger.SELECT_LANGUAGE),
    Transition(UssdStep.MAIN_MENU, UssdStep.PAID_SYMPTOMS,
               TransitionTrigger.PAYMENT_RESUMED),

    # --- Paid consultation ---
    Transition(UssdStep.PAID_SELECT_DOCTOR, UssdStep.PAID_SELECT_PAYMENT,
               TransitionTrigger.DOCTOR_SELECTED),
    Transition(UssdStep.PAID_SELECT_PAYMENT, UssdStep.PAID_SYMPTOMS,
               TransitionTrigger.PAYMENT_CONFIRMED),
    Transition(UssdStep.PAID_SELECT_PAYMENT, UssdStep.PAID_SELECT_DOCTOR,
               TransitionTrigger.PAYMENT_BACK),
] + [
    # --- Terminal: any open step may end the session ---
    Transition(step, UssdStep.CLOSED, TransitionTrigger.SESSION_ENDED)
    for step in UssdStep if step != UssdStep.CLOSED
]


VOICE_TRANSITIONS: list[Transition] = [
    # --- Menu ---
    Transition(VoiceStep.INCOMING, VoiceStep.TRIAL_RECORDING,
               TransitionTrigger.SELECT_TRIAL),
    Transition(VoiceStep.INCOMING, VoiceStep.DOCTOR_SELECTION,
               TransitionTrigger.SELECT_PAID),
    Transition(VoiceStep.DOCTOR_SELECTION, VoiceStep.PAID_RECORDING,
               TransitionTrigger.DOCTOR_SELECTED),

    # --- Recording and queueing ---
    Transition(VoiceStep.TRIAL_RECORDING, VoiceStep.QUEUED,
               TransitionTrigger.RECORDING_RECEIVED),
    Transition(VoiceStep.PAID_RECORDING, VoiceStep.QUEUED,
               TransitionTrigger.RECORDING_RECEIVED),
    Transition(VoiceStep.QUEUED, VoiceStep.WAITING,
               TransitionTrigger.DOCTOR_NOTIFIED),

    # --- Awaiting the doctor's decision ---
    Transition(VoiceStep.WAITING, VoiceStep.WAITING,
               TransitionTrigger.STILL_WAITING),
    Transition(VoiceStep.WAITING, VoiceStep.BRIDGED,
               TransitionTrigger.DOCTOR_ACCEPTED),
    Transition(VoiceStep.WAITING, VoiceStep.REJECTED,
               TransitionTrigger.DOCTOR_UNAVAILABLE),

    # --- Completion ---
    Transition(VoiceStep.BRIDGED, VoiceStep.COMPLETED,
               TransitionTrigger.CALL_ENDED),
] + [
    Transition(step, VoiceStep.COMPLETED, TransitionTrigger.SESSION_ENDED)
    for step in VoiceStep if step not in (VoiceStep.COMPLETED, VoiceStep.REJECTED)
]


_TERMINAL_STEPS = {UssdStep.CLOSED, VoiceStep.COMPLETED, VoiceStep.REJECTED}


def transitions_for(step: Step) -> list[Transition]:
    """Return the transition table of the channel that owns ``step``."""
    return USSD_TRANSITIONS if isinstance(step, UssdStep) else VOICE_TRANSITIONS


class SessionStateMachine:
    """
    Deterministic state machine controlling one session's progress.

    The machine is rebuilt from the persisted step on every webhook, so it
    holds only the history of the current request.
    """

    def __init__(self, initial_state: Step) -> None:
        self._current_state = initial_state
        self._transitions = transitions_for(initial_state)
        self._history: list[StateEntry] = [
            StateEntry(state=initial_state, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> Step:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> Step:
        """
        Execute a step transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new step.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self._transitions:
            if t.from_state == self._current_state and t.trigger == trigger:
                if t.guard is not None and not t.guard():
                    continue

                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Step transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def can_transition(self, trigger: TransitionTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current step."""
        return [t.trigger for t in self._transitions if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in _TERMINAL_STEPS
