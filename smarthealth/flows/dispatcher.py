"""
USSD dispatcher: one gateway request in, one CON/END response out.

The gateway sends the whole ``*``-joined input history on every round
trip. The session remembers how many tokens it has already consumed, and
only the new ones are fed to the step handlers, one token per step. A
retry of a request that was already answered therefore returns the stored
response without repeating any side effect:

- same token count as consumed: the last response is returned again
- terminal request retried after the session closed: the replay cache
  returns the same END body
- fewer tokens than consumed: the history no longer matches, the session
  is closed with an invalid-option answer

Every delivery for a session runs under that session's lock. Any failure
is answered with a generic END so the gateway is never left waiting.
"""

from typing import Optional

from smarthealth.config import settings
from smarthealth.conversation.guards import guards
from smarthealth.conversation.state_machine import SessionStateMachine, UssdStep
from smarthealth.conversation.tokenizer import new_tokens, tokenize
from smarthealth.conversation.validators import validate_pin
from smarthealth.exceptions import SessionBusyError
from smarthealth.flows import login, registration
from smarthealth.flows.context import FlowContext
from smarthealth.flows.registry import get_step_handler
from smarthealth.logging_context import get_session_logger, set_session_id
from smarthealth.prompts.ussd_messages import message
from smarthealth.repositories import sessions, subscribers
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import Subscriber
from smarthealth.schemas.session_schema import Channel, Session
from smarthealth.utils import normalize_phone

logger = get_session_logger(__name__)


def _looks_like_registration(tokens: list[str]) -> bool:
    """A name followed by a PIN: a registration retried under a new session."""
    return len(tokens) >= 2 and not validate_pin(tokens[0]) and validate_pin(tokens[1])


def _entry_step(subscriber: Optional[Subscriber], tokens: list[str]) -> UssdStep:
    if subscriber is None or not subscriber.pin_hash:
        return UssdStep.REGISTRATION_NAME
    if _looks_like_registration(tokens):
        return UssdStep.REGISTRATION_NAME
    return UssdStep.LOGIN_PIN


def _entry_prompt(ctx: FlowContext) -> UssdResponse:
    if ctx.session.step == UssdStep.LOGIN_PIN:
        return login.prompt(ctx)
    return registration.prompt(ctx)


def handle_ussd(session_id: str, service_code: str, phone: str, text: Optional[str]) -> UssdResponse:
    """Answer one gateway request. Never raises."""
    set_session_id(session_id)
    try:
        with sessions.session_lock(session_id):
            return _dispatch(session_id, normalize_phone(phone), text or "")
    except SessionBusyError:
        logger.warning("Session busy, request for service %s not processed", service_code)
    except Exception:
        logger.exception("USSD request failed")
    return UssdResponse.end(message("service_unavailable"))


def _dispatch(session_id: str, phone: str, text: str) -> UssdResponse:
    cached = sessions.recall_response(session_id, text)
    if cached is not None:
        logger.info("Replaying terminal response")
        return UssdResponse.parse(cached)

    tokens = tokenize(text)
    subscriber = subscribers.find_by_phone(phone)
    session = sessions.get(session_id)

    if session is None:
        session = Session(
            session_id=session_id,
            channel=Channel.USSD,
            subscriber_phone=phone,
            subscriber_id=subscriber.id if subscriber else None,
            step=_entry_step(subscriber, tokens),
        )
        logger.info("Session started at %s", session.step.value)
        if not tokens:
            response = _entry_prompt(FlowContext(session, subscriber, SessionStateMachine(session.step)))
            session.last_response = response.body
            sessions.upsert(session)
            return response
    elif len(tokens) < session.consumed:
        logger.warning(
            "Input history shrank (%d tokens, %d consumed), closing session",
            len(tokens), session.consumed,
        )
        sessions.delete(session_id)
        return UssdResponse.end(message("invalid_option", _language(subscriber)))
    elif len(tokens) == session.consumed:
        if session.last_response:
            logger.info("Duplicate delivery, returning last response")
            return UssdResponse.parse(session.last_response)
        return _entry_prompt(FlowContext(session, subscriber, SessionStateMachine(session.step)))

    ctx = FlowContext(session, subscriber, SessionStateMachine(session.step))
    response = _apply_tokens(ctx, new_tokens(tokens, session.consumed))
    return _persist(ctx, response, text)


def _apply_tokens(ctx: FlowContext, pending: list[str]) -> UssdResponse:
    """Feed new tokens to the step handlers until one answers with END."""
    session = ctx.session
    response = UssdResponse.end(message("invalid_option", ctx.language))
    for token in pending:
        auth = guards.authentication.check(session.step, session.authenticated)
        if not auth.passed:
            ctx.discard = True
            return UssdResponse.end(message(auth.message_key, ctx.language))

        handler = get_step_handler(session.step)
        if handler is None:
            logger.warning("No handler for step %s", session.step.value)
            return ctx.end_message("invalid_option")

        response = handler(ctx, token)
        if ctx.keep_session:
            return response
        session.consumed += 1
        if response.is_terminal:
            return response
    return response


def _persist(ctx: FlowContext, response: UssdResponse, text: str) -> UssdResponse:
    session = ctx.session
    if ctx.discard:
        logger.warning("Request rejected, session left untouched")
        return response
    if ctx.keep_session:
        session.last_response = None
        sessions.upsert(session)
        return response
    if response.is_terminal:
        sessions.delete(session.session_id)
        sessions.remember_response(session.session_id, text, response.body)
        return response
    session.last_response = response.body
    sessions.upsert(session)
    return response


def _language(subscriber: Optional[Subscriber]) -> str:
    return subscriber.language.value if subscriber else settings.brand.default_language
