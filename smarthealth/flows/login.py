"""PIN login for registered subscribers."""

import logging

from smarthealth.config import settings
from smarthealth.conversation.guards import guards
from smarthealth.conversation.state_machine import TransitionTrigger
from smarthealth.flows import paid
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.menu_builders import build_main_menu
from smarthealth.repositories import sessions, subscribers
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.security import verify_pin

logger = logging.getLogger(__name__)


def prompt(ctx: FlowContext) -> UssdResponse:
    return ctx.con_message("login_prompt", name=ctx.subscriber.display_name)


def verify(ctx: FlowContext, token: str) -> UssdResponse:
    """Check the PIN, then resume a parked payment or show the main menu."""
    subscriber = ctx.subscriber
    if subscriber is None or not subscriber.pin_hash:
        return ctx.end_message("not_authenticated")

    lockout = guards.lockout.check(subscriber)
    if not lockout.passed:
        return ctx.end_message(lockout.message_key, minutes=settings.session.pin_lockout_minutes)

    if not verify_pin(token.strip(), subscriber.pin_hash):
        updated = subscribers.record_failed_pin(subscriber.id)
        ctx.subscriber = updated
        if updated.is_locked():
            return ctx.end_message("login_locked", minutes=settings.session.pin_lockout_minutes)
        attempts_left = settings.session.max_pin_attempts - updated.failed_pin_attempts
        logger.info("Wrong PIN for %s (%d attempts left)", subscriber.id, attempts_left)
        return ctx.end_message("incorrect_pin", attempts_left=attempts_left)

    if subscriber.failed_pin_attempts or subscriber.locked_until:
        subscribers.reset_pin_attempts(subscriber.id)
    ctx.session.authenticated = True
    ctx.session.subscriber_id = subscriber.id
    ctx.advance(TransitionTrigger.PIN_ACCEPTED)
    logger.info("Subscriber %s logged in", subscriber.id)

    parked = sessions.parked_payment(subscriber.id)
    if parked is not None:
        return paid.resume_parked(ctx, parked)
    return ctx.con(build_main_menu(subscriber))
