"""
Bilingual USSD message catalogue (English / Kiswahili).

Every user-facing USSD string lives here, keyed by message name and
language. ``message()`` fills in the service name, USSD code and currency
from configuration so flows only pass the values specific to one answer.
"""

from typing import Any

from smarthealth.config import settings
from smarthealth.schemas.entity_schema import Language
from smarthealth.utils import format_amount

MESSAGES: dict[str, dict[str, str]] = {
    # --- Registration ---
    "registration_welcome": {
        "en": "{service}\nWelcome!\nYou are a new user.\nGet {trial_count} FREE consultations!\n"
              "Please enter your full name:",
        "sw": "{service}\nKaribu!\nWewe ni mtumiaji mpya.\nPata ushauri {trial_count} wa BURE!\n"
              "Tafadhali andika jina lako kamili:",
    },
    "registration_pin_prompt": {
        "en": "Hello {name}!\nCreate a 4-digit PIN:\n(This will protect your medical records)\nExample: 1234",
        "sw": "Habari {name}!\nUnda PIN ya tarakimu 4:\n(Italinda rekodi zako za matibabu)\nMfano: 1234",
    },
    "name_too_short": {
        "en": "Name Too Short\n\nName must be at least {min_length} characters.\n\n"
              "Please dial again:\n{ussd_code}\n\nThank you!",
        "sw": "Jina Fupi Sana\n\nJina lazima liwe na herufi {min_length} au zaidi.\n\n"
              "Tafadhali piga tena:\n{ussd_code}\n\nAsante!",
    },
    "invalid_pin": {
        "en": "Invalid PIN\n\nPIN must be exactly 4 digits.\nExample: 1234\n\n"
              "Please dial again:\n{ussd_code}\n\nThank you!",
        "sw": "PIN Si Sahihi\n\nPIN lazima iwe tarakimu 4 kamili.\nMfano: 1234\n\n"
              "Tafadhali piga tena:\n{ussd_code}\n\nAsante!",
    },
    "registration_success": {
        "en": "Registration Successful!\n\nName: {name}\nPhone: {phone}\n"
              "Trial: {trial_count} FREE consultations\n\nDial to start:\n{ussd_code}\n\n"
              "Welcome to {service}!",
        "sw": "Usajili Umefanikiwa!\n\nJina: {name}\nSimu: {phone}\n"
              "Majaribio: Ushauri {trial_count} wa BURE\n\nPiga kuanza:\n{ussd_code}\n\n"
              "Karibu {service}!",
    },
    "already_registered": {
        "en": "Already Registered\n\nThis number already has an account.\n\n"
              "Dial again to login:\n{ussd_code}\n\nThank you!",
        "sw": "Tayari Umesajiliwa\n\nNambari hii tayari ina akaunti.\n\n"
              "Piga tena kuingia:\n{ussd_code}\n\nAsante!",
    },
    "welcome_sms": {
        "en": "Welcome to {service}, {name}!\n\nRegistration successful.\n"
              "You have {trial_count} FREE consultations!\n\nDial: {ussd_code}\n\nThank you!",
        "sw": "Karibu {service}, {name}!\n\nUmesajiliwa kikamilifu.\n"
              "Una ushauri {trial_count} wa BURE!\n\nPiga: {ussd_code}\n\nAsante!",
    },

    # --- Login ---
    "login_prompt": {
        "en": "{service}\nWelcome back {name}\nEnter your 4-digit PIN:",
        "sw": "{service}\nKaribu tena {name}\nAndika PIN yako ya tarakimu 4:",
    },
    "incorrect_pin": {
        "en": "Incorrect PIN\n\nThe PIN you entered is wrong.\nAttempts left: {attempts_left}\n\n"
              "Please dial again:\n{ussd_code}\n\nForgot PIN? Contact support.\nThank you!",
        "sw": "PIN Si Sahihi\n\nPIN uliyoandika si sahihi.\nMajaribio yaliyobaki: {attempts_left}\n\n"
              "Tafadhali piga tena:\n{ussd_code}\n\nUmesahau PIN? Wasiliana nasi.\nAsante!",
    },
    "login_locked": {
        "en": "Account Locked\n\nToo many wrong PIN attempts.\n"
              "Try again after {minutes} minutes.\n\nThank you!",
        "sw": "Akaunti Imefungwa\n\nMajaribio mengi ya PIN yasiyo sahihi.\n"
              "Jaribu tena baada ya dakika {minutes}.\n\nAsante!",
    },

    # --- Trial ---
    "trial_ended": {
        "en": "Trial Period Ended\n\nYou've used all {trial_count} free consultations.\n"
              "Please choose \"Paid Consultation\" from main menu.\n\nThank you!",
        "sw": "Kipindi cha Bure Kimeisha\n\nUmeshatumia ushauri {trial_count} wa bure.\n"
              "Tafadhali chagua \"Malipo\" kutoka menyu kuu.\n\nAsante!",
    },
    "trial_prompt": {
        "en": "Free Trial Consultation ({remaining} remaining)\nDescribe your symptoms in detail:\n"
              "(At least 2 sentences)\nExample: I have severe headache and fever for 2 days",
        "sw": "Ushauri wa Bure ({remaining} zimebaki)\nAndika dalili zako kwa undani:\n"
              "(Angalau sentensi 2)\nMfano: Nina maumivu ya kichwa na homa kwa siku 2",
    },
    "symptoms_too_short": {
        "en": "Description Too Short\n\nPlease provide more detailed symptoms.\n"
              "At least {min_length} characters.\n\nTry again!",
        "sw": "Maelezo Mafupi Sana\n\nTafadhali eleza dalili zako kwa undani zaidi.\n"
              "Angalau herufi {min_length}.\n\nJaribu tena!",
    },
    "trial_received": {
        "en": "Received!\n\nA doctor will respond via SMS.\n\nCase: #{case_id}\n"
              "Time: 5-30 minutes\nReply: SMS\n\nThank you for using {service}!",
        "sw": "Imepokelewa!\n\nDaktari atakujibu kupitia SMS.\n\nKesi: #{case_id}\n"
              "Muda: Dakika 5-30\nJibu: SMS\n\nAsante kutumia {service}!",
    },
    "trial_received_sms": {
        "en": "Thank you! Your consultation has been received.\n\nCase: #{case_id}\n"
              "A doctor will respond via SMS within 5-30 minutes.\n\n{service}",
        "sw": "Asante! Ushauri wako umepokelewa.\n\nKesi: #{case_id}\n"
              "Daktari atakujibu kupitia SMS ndani ya dakika 5-30.\n\n{service}",
    },

    # --- Paid consultation ---
    "no_doctors": {
        "en": "No Doctors Available\n\nSorry, no doctors are available right now.\n\n"
              "Please try again later.\n\nThank you!",
        "sw": "Hakuna Madaktari\n\nSamahani, hakuna madaktari wanaopatikana sasa.\n\n"
              "Tafadhali jaribu tena baadaye.\n\nAsante!",
    },
    "symptoms_prompt": {
        "en": "Enter your symptoms:\n(At least 2 sentences)",
        "sw": "Andika dalili zako:\n(Angalau sentensi 2)",
    },
    "balance_paid": {
        "en": "Payment Successful!\n\nAmount: {currency} {amount}\nNew balance: {currency} {balance}\n\n"
              "Now describe your symptoms in detail:\n(At least 2 sentences)\n\n"
              "Example: I have stomach pain and diarrhea for 3 days",
        "sw": "Malipo Yamefanikiwa!\n\nKiasi: {currency} {amount}\nSalio mpya: {currency} {balance}\n\n"
              "Sasa andika dalili zako kwa undani:\n(Angalau sentensi 2)\n\n"
              "Mfano: Nina maumivu ya tumbo na kuhara kwa siku 3",
    },
    "payment_request_sent": {
        "en": "Payment Request Sent!\n\nAmount: {currency} {amount}\nNumber: {phone}\n\n"
              "You will receive payment SMS.\nPay then dial again:\n{ussd_code}\n\n"
              "Case: #{case_id}\nThank you!",
        "sw": "Ombi la Malipo Limetumwa!\n\nKiasi: {currency} {amount}\nNambari: {phone}\n\n"
              "Utapokea SMS ya malipo.\nLipa kisha piga tena:\n{ussd_code}\n\n"
              "Kesi: #{case_id}\nAsante!",
    },
    "payment_error": {
        "en": "Payment Error\n\nSorry, payment cannot be initiated now.\n"
              "Please try again later.\n\nThank you!",
        "sw": "Kosa la Malipo\n\nSamahani, malipo hayawezi kuanza sasa.\n"
              "Tafadhali jaribu tena baadaye.\n\nAsante!",
    },
    "insufficient_balance": {
        "en": "Insufficient Balance!\n\nYour balance: {currency} {balance}\n"
              "Required: {currency} {amount}\nShort by: {currency} {shortfall}\n\n"
              "Please:\n1. Use Mobile Payment, or\n2. Top up your balance first\n\nThank you!",
        "sw": "Salio Haitoshi!\n\nSalio lako: {currency} {balance}\n"
              "Unahitaji: {currency} {amount}\nUpungufu: {currency} {shortfall}\n\n"
              "Tafadhali:\n1. Tumia Malipo ya Simu, au\n2. Ongeza salio kwanza\n\nAsante!",
    },
    "payment_not_confirmed": {
        "en": "Payment Not Confirmed\n\nPlease start again and pay first.\n\n"
              "Dial again:\n{ussd_code}\n\nThank you!",
        "sw": "Malipo Hayajathibitishwa\n\nTafadhali anza upya na lipa kwanza.\n\n"
              "Piga tena:\n{ussd_code}\n\nAsante!",
    },
    "paid_received": {
        "en": "Payment Completed!\n\nDoctor: {doctor}\nAmount: {currency} {amount}\n"
              "Case: #{case_id}\n\nTime: 5-30 minutes\nReply: SMS\n\n"
              "Thank you for using {service}!",
        "sw": "Malipo Yamekamilika!\n\nDaktari: {doctor}\nKiasi: {currency} {amount}\n"
              "Kesi: #{case_id}\n\nMuda: Dakika 5-30\nJibu: SMS\n\n"
              "Asante kutumia {service}!",
    },
    "paid_received_sms": {
        "en": "Payment completed! Your consultation has been received.\n\nDoctor: {doctor}\n"
              "Amount: {currency} {amount}\nCase: #{case_id}\n\n"
              "Doctor will respond via SMS within 5-30 minutes.\n\n{service}",
        "sw": "Malipo yamekamilika! Ushauri wako umepokelewa.\n\nDaktari: {doctor}\n"
              "Kiasi: {currency} {amount}\nKesi: #{case_id}\n\n"
              "Daktari atakujibu kupitia SMS ndani ya dakika 5-30.\n\n{service}",
    },
    "payment_completed_prompt": {
        "en": "Payment Completed!\n\nNow describe your symptoms in detail:\n(At least 2 sentences)\n\n"
              "Example: I have stomach pain and diarrhea for 3 days",
        "sw": "Malipo Yamekamilika!\n\nSasa andika dalili zako kwa undani:\n(Angalau sentensi 2)\n\n"
              "Mfano: Nina maumivu ya tumbo na kuhara kwa siku 3",
    },
    "payment_still_pending": {
        "en": "Payment Still Pending\n\nPlease complete payment via SMS.\nThen dial again:\n"
              "{ussd_code}\n\nCase: #{case_id}\nThank you!",
        "sw": "Malipo Bado Yanasubiri\n\nTafadhali lipa kwanza kupitia SMS.\nKisha piga tena:\n"
              "{ussd_code}\n\nKesi: #{case_id}\nAsante!",
    },
    "payment_failed": {
        "en": "Payment Failed\n\nPlease try again.\n\nDial:\n{ussd_code}\n\nThank you!",
        "sw": "Malipo Yameshindwa\n\nTafadhali jaribu tena.\n\nPiga:\n{ussd_code}\n\nAsante!",
    },
    "payment_completed_sms": {
        "en": "Payment completed! Your service is now active.\n\nCase: #{case_id}\n"
              "Amount: {currency} {amount}\n\nDial {ussd_code} to describe your symptoms.\n\n{service}",
        "sw": "Malipo yamekamilika! Huduma yako sasa iko hai.\n\nKesi: #{case_id}\n"
              "Kiasi: {currency} {amount}\n\nPiga {ussd_code} kuandika dalili zako.\n\n{service}",
    },

    # --- History ---
    "history_empty": {
        "en": "Consultation History\n\nNo consultation history yet.\n\n"
              "Start your first consultation today!",
        "sw": "Historia ya Ushauri\n\nHuna historia ya ushauri bado.\n\n"
              "Anza ushauri wako wa kwanza leo!",
    },
    "history_header": {
        "en": "Your History (Last {limit})",
        "sw": "Historia Yako ({limit} za hivi karibuni)",
    },
    "history_footer": {
        "en": "Thank you for using {service}!",
        "sw": "Asante kutumia {service}!",
    },

    # --- Language ---
    "language_changed": {
        "en": "Language Changed!\n\nNew language: English\n\nDial again to continue:\n"
              "{ussd_code}\n\nThank you!",
        "sw": "Lugha Imebadilishwa!\n\nLugha mpya: Kiswahili\n\nPiga tena kuendelea:\n"
              "{ussd_code}\n\nAsante!",
    },

    # --- Logout and errors ---
    "logout": {
        "en": "Logged Out Successfully\n\nFor your security, session closed.\n\n"
              "Dial again to login:\n{ussd_code}\n\nThank you!",
        "sw": "Umetoka Kikamilifu\n\nKwa usalama wako, session imefungwa.\n\n"
              "Piga tena kuingia:\n{ussd_code}\n\nAsante!",
    },
    "invalid_option": {
        "en": "Invalid Option\n\nPlease select a valid number.\n\nDial again:\n{ussd_code}\n\nThank you!",
        "sw": "Chaguo Si Sahihi\n\nTafadhali chagua nambari sahihi.\n\nPiga tena:\n{ussd_code}\n\nAsante!",
    },
    "not_authenticated": {
        "en": "Not Logged In\n\nPlease dial again and enter your PIN.\n\n{ussd_code}\n\nThank you!",
        "sw": "Hujaingia\n\nTafadhali piga tena na uandike PIN yako.\n\n{ussd_code}\n\nAsante!",
    },
    "service_unavailable": {
        "en": "Service Unavailable\n\nSorry, please try again in a few minutes.\n\nThank you!",
        "sw": "Huduma Haipatikani\n\nSamahani, tafadhali jaribu tena baada ya dakika chache.\n\nAsante!",
    },

    # --- Voice follow-up ---
    "voice_completed_sms": {
        "en": "Thank you for using {service}. Your consultation with Dr. {doctor} "
              "has been completed. Case #{case_id}",
        "sw": "Asante kutumia {service}. Ushauri wako na Dkt. {doctor} "
              "umekamilika. Kesi #{case_id}",
    },
    "voice_unavailable_sms": {
        "en": "Sorry, no doctor could take your call. Case #{case_id}.\n"
              "Dial {ussd_code} to book a consultation by text.\n\n{service}",
        "sw": "Samahani, hakuna daktari aliyeweza kupokea simu yako. Kesi #{case_id}.\n"
              "Piga {ussd_code} kuomba ushauri kwa maandishi.\n\n{service}",
    },
}


def _lang(language: Any) -> str:
    value = language.value if isinstance(language, Language) else str(language or "")
    return value if value in ("en", "sw") else "en"


def message(key: str, language: Any = Language.EN, **values: Any) -> str:
    """Render catalogue entry ``key`` in ``language``.

    Float values are rendered as money amounts (``500.0`` becomes ``500``).

    Raises:
        KeyError: If the key is not in the catalogue.
    """
    template = MESSAGES[key][_lang(language)]
    context: dict[str, Any] = {
        "service": settings.brand.service_name,
        "ussd_code": settings.brand.ussd_code,
        "currency": settings.brand.currency,
        "trial_count": settings.trial.free_consultations,
    }
    for name, value in values.items():
        context[name] = format_amount(value) if isinstance(value, float) else value
    return template.format(**context)
