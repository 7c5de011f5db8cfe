"""Spoken prompts for the IVR and the doctor's call leg."""

from smarthealth.config import settings
from smarthealth.schemas.entity_schema import Case
from smarthealth.schemas.session_schema import DoctorOption
from smarthealth.utils import format_amount

WELCOME_MENU = (
    "Welcome to {service}. Press 1 for free trial consultation. "
    "Press 2 for paid consultation. Press 3 for consultation history."
)
NO_INPUT = "We did not receive your input. Goodbye."
INVALID_OPTION = "Invalid option. Please try again."
TRIAL_ENDED = "Your trial period has ended. Please choose paid consultation."
NO_DOCTORS = "No doctors are currently available. Please try again later."
INVALID_SELECTION = "Invalid selection. Please try again."
SESSION_EXPIRED = "Session expired. Please call again."
RECORD_SYMPTOMS = "Please describe your symptoms after the beep. Press hash when finished."
CONNECTING = "Thank you. We are connecting you to a doctor. Please wait."
KEEP_HOLDING = "Please continue to hold. A doctor will be with you shortly."
BRIDGING = "Connecting you to the doctor now."
DOCTOR_UNAVAILABLE = (
    "The doctor is currently unavailable. We will send you an SMS with alternative options."
)
REQUEST_FAILED = "Unable to process your request. Please try again."
TECHNICAL_ERROR = "Sorry, we are experiencing technical difficulties. Please try again later."
GOODBYE = "Thank you for using {service}. Goodbye."
NO_HISTORY = "You have no consultation history yet."

DOCTOR_INVALID_REQUEST = "Invalid request."
DOCTOR_ACCEPTED = "Request accepted. Connecting you to the patient now."
DOCTOR_REJECTED = "Request rejected. Thank you."
DOCTOR_TOO_LATE = "This request is no longer waiting. Thank you."


def welcome_menu() -> str:
    return WELCOME_MENU.format(service=settings.brand.service_name)


def goodbye() -> str:
    return GOODBYE.format(service=settings.brand.service_name)


def doctor_list(doctors: list[DoctorOption]) -> str:
    parts = ["Available doctors."]
    for index, doctor in enumerate(doctors, start=1):
        parts.append(
            f"Press {index} for Doctor {doctor.name}, {doctor.specialization}, "
            f"fee {format_amount(doctor.fee)} shillings."
        )
    return " ".join(parts)


def doctor_selected(doctor: DoctorOption) -> str:
    return f"You selected Doctor {doctor.name}. {RECORD_SYMPTOMS}"


def history(cases: list[Case], doctor_names: dict[str, str]) -> str:
    if not cases:
        return NO_HISTORY
    parts = ["Your recent consultations."]
    for index, case in enumerate(cases, start=1):
        doctor = doctor_names.get(case.doctor_id or "", "Pending")
        parts.append(f"{index}. {doctor}, status {case.status.value}.")
    return " ".join(parts)


def doctor_request(patient_name: str) -> str:
    return (
        f"You have a consultation request from {patient_name}. "
        "Press 1 to accept. Press 2 to reject."
    )


def doctor_request_sms(patient_name: str, case_id: str, entry_id: str) -> str:
    return (
        f"New voice consultation request from {patient_name}. Case #{case_id}. "
        f"Request {entry_id}. Login to dashboard to accept or reject."
    )
