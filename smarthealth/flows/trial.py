"""Free trial consultation: symptoms in, case out, doctor auto-assigned."""

import logging

from smarthealth.config import settings
from smarthealth.conversation.guards import guards
from smarthealth.conversation.state_machine import TransitionTrigger
from smarthealth.conversation.validators import validate_symptoms
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.ussd_messages import message
from smarthealth.repositories import cases, offers, subscribers
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import ConsultationType
from smarthealth.services import messaging

logger = logging.getLogger(__name__)


def enter(ctx: FlowContext) -> UssdResponse:
    trial = guards.trial.check(ctx.subscriber)
    if not trial.passed:
        return ctx.end_message(trial.message_key)
    ctx.advance(TransitionTrigger.SELECT_TRIAL)
    remaining = ctx.subscriber.trial_remaining(settings.trial.free_consultations)
    return ctx.con_message("trial_prompt", remaining=remaining)


def capture_symptoms(ctx: FlowContext, token: str) -> UssdResponse:
    subscriber = ctx.subscriber
    # The window may have closed between the prompt and the answer
    trial = guards.trial.check(subscriber)
    if not trial.passed:
        return ctx.end_message(trial.message_key)
    if not validate_symptoms(token):
        return ctx.end_message(
            "symptoms_too_short", min_length=settings.session.min_symptom_length,
        )

    case = cases.create(subscriber.id, token.strip(), ConsultationType.TRIAL)
    cases.auto_assign(case.id)
    consultation_count = subscribers.increment_consultation_count(subscriber.id)
    offers.grant_for_count(subscriber.id, consultation_count)
    logger.info("Trial case %s created for %s", case.id, subscriber.id)

    messaging.notify(
        subscriber.phone, message("trial_received_sms", subscriber.language, case_id=case.id),
    )
    return ctx.end_message("trial_received", case_id=case.id)
