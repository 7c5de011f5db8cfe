"""Language preference."""

import logging

from smarthealth.conversation.state_machine import TransitionTrigger
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.menu_builders import LANGUAGE_MENU
from smarthealth.repositories import subscribers
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import Language

logger = logging.getLogger(__name__)

LANGUAGE_CHOICES = {"1": Language.EN, "2": Language.SW}


def enter(ctx: FlowContext) -> UssdResponse:
    ctx.advance(TransitionTrigger.SELECT_LANGUAGE)
    return ctx.con(LANGUAGE_MENU)


def select(ctx: FlowContext, token: str) -> UssdResponse:
    language = LANGUAGE_CHOICES.get(token.strip())
    if language is None:
        return ctx.end_message("invalid_option")
    subscribers.set_language(ctx.subscriber.id, language)
    ctx.subscriber = subscribers.get(ctx.subscriber.id)
    logger.info("Language of %s set to %s", ctx.subscriber.id, language.value)
    return ctx.end_message("language_changed")
