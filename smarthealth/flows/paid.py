"""
Paid consultation: doctor, price and payment, then symptoms.

The doctor list is pinned into the session payload when it is first shown,
so a selection index always refers to the list the subscriber saw.

Mobile payments end the session: the gateway pushes a prompt to the phone
and the paid-flow payload is parked under the subscriber. The next login
checks the transaction and, once it has completed, resumes symptom capture
with the parked payload.

Balance and free-offer payments are parked as soon as they are confirmed.
Until a case is created from it, a confirmed payload survives the session
and the next login returns straight to symptom capture.
"""

import logging
from typing import Optional

from smarthealth.config import settings
from smarthealth.conversation.guards import guards
from smarthealth.conversation.state_machine import TransitionTrigger
from smarthealth.conversation.validators import parse_menu_index, validate_symptoms
from smarthealth.exceptions import PaymentGatewayError, TransactionNotFoundError
from smarthealth.flows.context import FlowContext
from smarthealth.prompts.menu_builders import (
    build_doctor_menu,
    build_free_offer_menu,
    build_payment_menu,
)
from smarthealth.prompts.ussd_messages import message
from smarthealth.repositories import cases, doctors, offers, sessions, subscribers, transactions
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import (
    ConsultationType,
    Offer,
    OfferType,
    PaymentMethod,
    TransactionStatus,
)
from smarthealth.schemas.session_schema import DoctorOption, PaidConsultationPayload
from smarthealth.services import messaging, payments

logger = logging.getLogger(__name__)

# Placeholder symptoms of a case opened before the mobile payment settles
PROVISIONAL_SYMPTOMS = "pending"


def _payload(ctx: FlowContext) -> Optional[PaidConsultationPayload]:
    payload = ctx.session.payload
    return payload if isinstance(payload, PaidConsultationPayload) else None


def price_with_offer(fee: float, offer: Optional[Offer]) -> tuple[float, float]:
    """Return ``(discount, final_amount)`` for ``fee`` under ``offer``.

    Free consultations cost nothing, discounts take their percentage off,
    and a priority-queue offer leaves the price unchanged.
    """
    if offer is None or offer.offer_type == OfferType.PRIORITY_QUEUE:
        return 0.0, fee
    if offer.offer_type == OfferType.FREE_CONSULTATION:
        return fee, 0.0
    discount = round(fee * (offer.discount_percentage or 0) / 100, 2)
    return discount, round(fee - discount, 2)


def enter(ctx: FlowContext) -> UssdResponse:
    available = doctors.list_available()
    if not available:
        return ctx.end_message("no_doctors")
    payload = PaidConsultationPayload(
        doctors=[DoctorOption.from_doctor(doctor) for doctor in available],
    )
    ctx.session.payload = payload
    ctx.advance(TransitionTrigger.SELECT_PAID)
    return ctx.con(build_doctor_menu(payload.doctors, ctx.language))


def select_doctor(ctx: FlowContext, token: str) -> UssdResponse:
    payload = _payload(ctx)
    if payload is None:
        return ctx.end_message("invalid_option")
    index = parse_menu_index(token, len(payload.doctors))
    if index is None:
        return ctx.end_message("invalid_option")

    doctor = payload.doctors[index]
    offer = offers.get_best_offer(ctx.subscriber.id)
    discount, final_amount = price_with_offer(doctor.fee, offer)
    payload.selected_doctor = doctor
    payload.fee = doctor.fee
    payload.discount = discount
    payload.final_amount = final_amount
    payload.offer_id = offer.id if offer else None
    payload.offer_type = offer.offer_type if offer else None
    ctx.advance(TransitionTrigger.DOCTOR_SELECTED)
    logger.info(
        "Doctor %s selected, fee %s, final %s (offer %s)",
        doctor.id, doctor.fee, final_amount, payload.offer_type.value if offer else "none",
    )

    if payload.is_free:
        return ctx.con(build_free_offer_menu(payload, ctx.language))
    return ctx.con(build_payment_menu(payload, ctx.subscriber.balance, ctx.language))


def _back_to_doctors(ctx: FlowContext, payload: PaidConsultationPayload) -> UssdResponse:
    payload.selected_doctor = None
    payload.fee = payload.discount = payload.final_amount = 0.0
    payload.offer_id = None
    payload.offer_type = None
    ctx.advance(TransitionTrigger.PAYMENT_BACK)
    return ctx.con(build_doctor_menu(payload.doctors, ctx.language))


def select_payment(ctx: FlowContext, token: str) -> UssdResponse:
    payload = _payload(ctx)
    if payload is None or payload.selected_doctor is None:
        return ctx.end_message("invalid_option")
    choice = token.strip()

    if payload.is_free:
        if choice == "1":
            return _confirm_free(ctx, payload)
        if choice == "2":
            return _back_to_doctors(ctx, payload)
        return ctx.end_message("invalid_option")

    if choice == "1":
        return _pay_mobile(ctx, payload)
    if choice == "2":
        return _pay_balance(ctx, payload)
    if choice == "3":
        return _back_to_doctors(ctx, payload)
    return ctx.end_message("invalid_option")


def _confirm(
    ctx: FlowContext, payload: PaidConsultationPayload, method: PaymentMethod,
) -> None:
    """Mark the payment confirmed and park the payload until the case exists."""
    payload.payment_method = method
    payload.payment_confirmed = True
    sessions.park_payment(ctx.subscriber.id, payload)
    ctx.advance(TransitionTrigger.PAYMENT_CONFIRMED)


def _confirm_free(ctx: FlowContext, payload: PaidConsultationPayload) -> UssdResponse:
    if not payload.offer_id or not offers.apply(payload.offer_id):
        logger.warning("Free offer %s no longer available", payload.offer_id)
        return ctx.end_message("payment_not_confirmed")
    _confirm(ctx, payload, PaymentMethod.FREE_OFFER)
    return ctx.con_message("symptoms_prompt")


def _pay_balance(ctx: FlowContext, payload: PaidConsultationPayload) -> UssdResponse:
    subscriber = ctx.subscriber
    amount = payload.final_amount
    if not subscribers.debit(subscriber.id, amount):
        return ctx.end_message(
            "insufficient_balance",
            balance=subscriber.balance,
            amount=amount,
            shortfall=round(amount - subscriber.balance, 2),
        )
    if payload.offer_id:
        offers.apply(payload.offer_id)
    ctx.subscriber = subscribers.get(subscriber.id)
    _confirm(ctx, payload, PaymentMethod.BALANCE)
    return ctx.con_message("balance_paid", amount=amount, balance=ctx.subscriber.balance)


def _pay_mobile(ctx: FlowContext, payload: PaidConsultationPayload) -> UssdResponse:
    """Open a provisional case, push the payment and park the payload.

    A gateway failure keeps both the session and the provisional case, so a
    retry of the same request re-attempts the push against the same case.
    """
    subscriber = ctx.subscriber
    if payload.case_id is None:
        case = cases.create(subscriber.id, PROVISIONAL_SYMPTOMS, ConsultationType.PAID)
        payload.case_id = case.id

    try:
        result = payments.initiate(
            subscriber.id, payload.final_amount, subscriber.phone, case_id=payload.case_id,
        )
    except PaymentGatewayError:
        ctx.keep_session = True
        return ctx.end_message("payment_error")

    payload.payment_method = PaymentMethod.MOBILE
    payload.payment_pending = True
    payload.payment_id = result["payment_id"]
    payload.transaction_id = result["transaction_id"]
    sessions.park_payment(subscriber.id, payload)
    return ctx.end_message(
        "payment_request_sent",
        amount=payload.final_amount,
        phone=subscriber.phone,
        case_id=payload.case_id,
    )


def _resume(ctx: FlowContext, parked: PaidConsultationPayload) -> UssdResponse:
    ctx.session.payload = parked
    ctx.advance(TransitionTrigger.PAYMENT_RESUMED)
    return ctx.con_message("payment_completed_prompt")


def resume_parked(ctx: FlowContext, parked: PaidConsultationPayload) -> UssdResponse:
    """Continue a parked payment after login.

    A payload parked after its payment was confirmed goes straight back to
    symptom capture. Otherwise it is a mobile push whose transaction decides.
    """
    subscriber = ctx.subscriber
    if parked.payment_confirmed:
        logger.info("Confirmed payment for case %s parked, resuming", parked.case_id)
        return _resume(ctx, parked)

    try:
        status = payments.check_status(parked.transaction_id or "")
    except TransactionNotFoundError:
        status = TransactionStatus.FAILED.value

    if status == TransactionStatus.COMPLETED.value:
        parked.payment_confirmed = True
        parked.payment_pending = False
        if parked.offer_id:
            offers.apply(parked.offer_id)
        sessions.park_payment(subscriber.id, parked)
        logger.info("Parked payment %s completed, resuming", parked.transaction_id)
        return _resume(ctx, parked)

    if status == TransactionStatus.PENDING.value:
        return ctx.end_message("payment_still_pending", case_id=parked.case_id)

    sessions.drop_parked_payment(subscriber.id)
    logger.info("Parked payment %s failed, dropped", parked.transaction_id)
    return ctx.end_message("payment_failed")


def capture_symptoms(ctx: FlowContext, token: str) -> UssdResponse:
    """Finalize the case. Refused unless the payment is confirmed.

    The confirmed payload stays parked until the case is created, so symptoms
    that fail validation send the next login back here.
    """
    payload = _payload(ctx)
    confirmed = payload is not None and payload.payment_confirmed
    payment = guards.payment.check(confirmed)
    if not payment.passed:
        return ctx.end_message(payment.message_key)
    if not validate_symptoms(token):
        return ctx.end_message(
            "symptoms_too_short", min_length=settings.session.min_symptom_length,
        )

    subscriber = ctx.subscriber
    doctor = payload.selected_doctor
    symptoms = token.strip()
    consultation_type = (
        ConsultationType.FREE_OFFER
        if payload.offer_type == OfferType.FREE_CONSULTATION
        else ConsultationType.PAID
    )
    priority = 1 if payload.offer_type == OfferType.PRIORITY_QUEUE else 0

    if payload.case_id:
        case = cases.update_details(payload.case_id, symptoms, consultation_type, priority)
    else:
        case = cases.create(subscriber.id, symptoms, consultation_type, priority=priority)
    case = cases.assign(case.id, doctor.id)

    sessions.drop_parked_payment(subscriber.id)
    if payload.payment_method != PaymentMethod.MOBILE:
        transactions.create(
            subscriber.id,
            payload.final_amount,
            payload.payment_method or PaymentMethod.BALANCE,
            case_id=case.id,
            status=TransactionStatus.COMPLETED,
        )

    consultation_count = subscribers.increment_consultation_count(subscriber.id)
    offers.grant_for_count(subscriber.id, consultation_count)
    logger.info("Paid case %s assigned to %s", case.id, doctor.id)

    messaging.notify(
        subscriber.phone,
        message(
            "paid_received_sms", subscriber.language,
            doctor=doctor.name, amount=payload.final_amount, case_id=case.id,
        ),
    )
    return ctx.end_message(
        "paid_received", doctor=doctor.name, amount=payload.final_amount, case_id=case.id,
    )
