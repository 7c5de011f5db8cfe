from smarthealth.flows.dispatcher import handle_ussd
from smarthealth.flows.registry import get_registered_options, register_menu_option, register_step

__all__ = [
    "handle_ussd",
    "register_step", "register_menu_option", "get_registered_options",
]
