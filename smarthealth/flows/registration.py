"""New-subscriber onboarding: name, then a four-digit PIN."""

import logging

from smarthealth.config import settings
from smarthealth.conversation.state_machine import TransitionTrigger
from smarthealth.conversation.validators import normalize_name, validate_name, validate_pin
from smarthealth.exceptions import DuplicateSubscriberError
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.ussd_messages import message
from smarthealth.repositories import subscribers
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.session_schema import RegistrationPayload
from smarthealth.security import hash_pin
from smarthealth.services import messaging

logger = logging.getLogger(__name__)


def prompt(ctx: FlowContext) -> UssdResponse:
    return ctx.con_message("registration_welcome")


def capture_name(ctx: FlowContext, token: str) -> UssdResponse:
    name = normalize_name(token)
    if not validate_name(name):
        return ctx.end_message("name_too_short", min_length=settings.session.min_name_length)
    ctx.session.payload = RegistrationPayload(name=name)
    ctx.advance(TransitionTrigger.NAME_ACCEPTED)
    return ctx.con_message("registration_pin_prompt", name=name)


def capture_pin(ctx: FlowContext, token: str) -> UssdResponse:
    """Create the subscriber. A phone that already has a PIN is never duplicated."""
    payload = ctx.session.payload
    if not isinstance(payload, RegistrationPayload):
        return ctx.end_message("invalid_option")
    if not validate_pin(token):
        return ctx.end_message("invalid_pin")

    phone = ctx.session.subscriber_phone
    try:
        subscriber = subscribers.register(phone, payload.name, hash_pin(token.strip()))
    except DuplicateSubscriberError:
        logger.info("Registration refused, phone already registered")
        return ctx.end_message("already_registered")

    ctx.subscriber = subscriber
    ctx.session.subscriber_id = subscriber.id
    ctx.session.authenticated = True
    ctx.advance(TransitionTrigger.SUBSCRIBER_CREATED)
    logger.info("Registration complete: %s", subscriber.id)

    messaging.notify(phone, message("welcome_sms", subscriber.language, name=subscriber.name))
    return ctx.end_message("registration_success", name=subscriber.name, phone=phone)
