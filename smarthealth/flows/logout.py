"""Explicit logout. Ending the response closes and deletes the session."""

import logging

from smarthealth.flows.context import FlowContext
from smarthealth.schemas.channel_schema import UssdResponse

logger = logging.getLogger(__name__)


def enter(ctx: FlowContext) -> UssdResponse:
    logger.info("Subscriber %s logged out", ctx.session.subscriber_id)
    ctx.session.authenticated = False
    return ctx.end_message("logout")
