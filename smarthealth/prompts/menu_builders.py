"""Builders for the USSD menus whose lines depend on live data."""

from typing import Any

from smarthealth.config import settings
from smarthealth.prompts.ussd_messages import message
from smarthealth.schemas.entity_schema import Case, Subscriber
from smarthealth.schemas.session_schema import DoctorOption, PaidConsultationPayload
from smarthealth.utils import format_amount

_MAIN_MENU = {
    "en": {
        "welcome": "Welcome",
        "trial": "Free Trial",
        "left": "left",
        "expired": "Expired",
        "items": ["Paid Consultation", "My History", "Change Language", "Logout"],
    },
    "sw": {
        "welcome": "Karibu",
        "trial": "Bure",
        "left": "zimebaki",
        "expired": "Imeisha",
        "items": ["Malipo", "Historia", "Lugha", "Toka"],
    },
}

LANGUAGE_MENU = "Select Language / Chagua Lugha\n1. English\n2. Kiswahili"


def _lang(subscriber: Subscriber) -> str:
    return subscriber.language.value


def build_main_menu(subscriber: Subscriber) -> str:
    """Main menu naming the subscriber and the free consultations left."""
    text: dict[str, Any] = _MAIN_MENU[_lang(subscriber)]
    remaining = subscriber.trial_remaining(settings.trial.free_consultations)
    trial_state = f"{remaining} {text['left']}" if remaining > 0 else text["expired"]
    lines = [
        settings.brand.service_name,
        f"{text['welcome']} {subscriber.display_name}",
        "",
        f"1. {text['trial']} ({trial_state})",
    ]
    lines += [f"{i}. {item}" for i, item in enumerate(text["items"], start=2)]
    return "\n".join(lines)


def build_doctor_menu(doctors: list[DoctorOption], language: str) -> str:
    lines = ["Chagua Daktari" if language == "sw" else "Select Doctor"]
    for index, doctor in enumerate(doctors, start=1):
        lines.append(f"{index}. Dr. {doctor.name}")
        lines.append(f"{doctor.specialization} - {settings.brand.currency} {format_amount(doctor.fee)}")
    return "\n".join(lines)


def build_payment_menu(payload: PaidConsultationPayload, balance: float, language: str) -> str:
    """Payment method menu: 1 mobile push, 2 stored balance, 3 back."""
    doctor = payload.selected_doctor
    currency = settings.brand.currency
    sw = language == "sw"
    lines = [
        "MALIPO YANAHITAJIKA" if sw else "PAYMENT REQUIRED",
        f"{'Daktari' if sw else 'Doctor'}: {doctor.name}",
        f"{'Bei' if sw else 'Fee'}: {currency} {format_amount(payload.fee)}",
    ]
    if payload.discount > 0:
        lines.append(f"{'Punguzo' if sw else 'Discount'}: -{currency} {format_amount(payload.discount)}")
    lines += [
        f"{'Jumla' if sw else 'Total'}: {currency} {format_amount(payload.final_amount)}",
        "Chagua njia ya malipo:" if sw else "Select payment method:",
        "1. Malipo ya Simu" if sw else "1. Mobile Payment",
        f"2. {'Salio' if sw else 'Balance'} ({currency} {format_amount(balance)})",
        "3. Rudi" if sw else "3. Back",
    ]
    return "\n".join(lines)


def build_free_offer_menu(payload: PaidConsultationPayload, language: str) -> str:
    """Shown when an offer brings the price to zero: 1 continue, 2 back."""
    doctor = payload.selected_doctor
    currency = settings.brand.currency
    if language == "sw":
        lines = [
            "HONGERA! Ushauri wa BURE!",
            f"Daktari: {doctor.name}",
            f"Bei ya kawaida: {currency} {format_amount(payload.fee)}",
            f"Punguzo: -{currency} {format_amount(payload.discount)}",
            f"Bei yako: {currency} 0",
            "1. Endelea",
            "2. Rudi",
        ]
    else:
        lines = [
            "CONGRATULATIONS! FREE Consultation!",
            f"Doctor: {doctor.name}",
            f"Regular price: {currency} {format_amount(payload.fee)}",
            f"Discount: -{currency} {format_amount(payload.discount)}",
            f"Your price: {currency} 0",
            "1. Continue",
            "2. Back",
        ]
    return "\n".join(lines)


def build_history(cases: list[Case], doctor_names: dict[str, str], language: str) -> str:
    if not cases:
        return message("history_empty", language)
    pending = "Inasubiri" if language == "sw" else "Pending"
    lines = [message("history_header", language, limit=settings.session.history_limit)]
    for index, case in enumerate(cases, start=1):
        doctor = doctor_names.get(case.doctor_id or "", pending)
        lines.append(f"{index}. {case.created_at.strftime('%d/%m/%Y')}")
        lines.append(f"Dr: {doctor} - {case.status.value}")
    lines.append(message("history_footer", language))
    return "\n".join(lines)
