"""
Authorization guards evaluated before a flow is allowed to act.

Four independent checks, each covering a different concern:
1. AuthenticationGuard  - protected steps require an authenticated session
2. PinLockoutGuard      - locked subscribers may not attempt a PIN
3. TrialGuard           - trial consultations need an open window and credit
4. PaymentGuard         - paid symptom capture needs a confirmed payment

A failed guard carries the message key of the terminal response to send.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from smarthealth.config import settings
from smarthealth.conversation.state_machine import Step, UssdStep, VoiceStep
from smarthealth.schemas.entity_schema import Subscriber

logger = logging.getLogger(__name__)


@dataclass
class GuardResult:
    """Outcome of a single guard check."""
    passed: bool
    violation_type: Optional[str] = None
    message_key: Optional[str] = None


PASSED = GuardResult(passed=True)


class AuthenticationGuard:
    """Rejects unauthenticated sessions on every step past onboarding."""

    OPEN_STEPS = {
        UssdStep.REGISTRATION_NAME,
        UssdStep.REGISTRATION_PIN,
        UssdStep.LOGIN_PIN,
        UssdStep.CLOSED,
        VoiceStep.INCOMING,
    }

    def check(self, step: Step, authenticated: bool) -> GuardResult:
        if step in self.OPEN_STEPS or authenticated:
            return PASSED
        logger.warning("Unauthenticated session reached protected step '%s'", step.value)
        return GuardResult(
            passed=False,
            violation_type="not_authenticated",
            message_key="not_authenticated",
        )


class PinLockoutGuard:
    def check(self, subscriber: Subscriber, now: Optional[datetime] = None) -> GuardResult:
        if subscriber.is_locked(now):
            return GuardResult(
                passed=False,
                violation_type="pin_locked",
                message_key="login_locked",
            )
        return PASSED


class TrialGuard:
    """Trial needs both an open window and remaining free consultations."""

    def check(self, subscriber: Subscriber, now: Optional[datetime] = None) -> GuardResult:
        remaining = subscriber.trial_remaining(settings.trial.free_consultations, now)
        if remaining > 0:
            return PASSED
        return GuardResult(
            passed=False,
            violation_type="trial_exhausted",
            message_key="trial_ended",
        )


class PaymentGuard:
    def check(self, payment_confirmed: bool) -> GuardResult:
        if payment_confirmed:
            return PASSED
        logger.warning("Symptom capture attempted without confirmed payment")
        return GuardResult(
            passed=False,
            violation_type="payment_not_confirmed",
            message_key="payment_not_confirmed",
        )


class GuardPipeline:
    """Composes the guards so flows share one instance."""

    def __init__(self) -> None:
        self.authentication = AuthenticationGuard()
        self.lockout = PinLockoutGuard()
        self.trial = TrialGuard()
        self.payment = PaymentGuard()


guards = GuardPipeline()
