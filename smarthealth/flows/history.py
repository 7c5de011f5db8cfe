"""Recent consultation history."""

from smarthealth.config import settings
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.menu_builders import build_history
from smarthealth.repositories import cases, doctors
from smarthealth.schemas.channel_schema import UssdResponse


def doctor_names(case_list) -> dict[str, str]:
    names = {}
    for case in case_list:
        if case.doctor_id and case.doctor_id not in names:
            doctor = doctors.get(case.doctor_id)
            if doctor is not None:
                names[case.doctor_id] = doctor.name
    return names


def enter(ctx: FlowContext) -> UssdResponse:
    recent = cases.list_for_subscriber(ctx.subscriber.id, limit=settings.session.history_limit)
    return ctx.end(build_history(recent, doctor_names(recent), ctx.language))
