"""
Flow registry: step handlers and main-menu options.

Flow modules do not import each other to route. The dispatcher looks up
the handler for the session's current step here, and the main menu
resolves a selector digit to the entry function of a sub-flow. Built-in
flows are registered once at import time.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from smarthealth.conversation.state_machine import UssdStep
from smarthealth.flows.context import FlowContext
from smarthealth.schemas.channel_schema import UssdResponse

logger = logging.getLogger(__name__)

StepHandler = Callable[[FlowContext, str], UssdResponse]
MenuEntry = Callable[[FlowContext], UssdResponse]


@dataclass(frozen=True)
class MenuOption:
    selector: str
    name: str
    enter: MenuEntry


_STEP_HANDLERS: dict[UssdStep, StepHandler] = {}
_MENU_OPTIONS: dict[str, MenuOption] = {}


def register_step(step: UssdStep, handler: StepHandler) -> None:
    """Register the handler that consumes one token at ``step``."""
    _STEP_HANDLERS[step] = handler
    logger.debug("Step handler registered: %s", step.value)


def get_step_handler(step: UssdStep) -> Optional[StepHandler]:
    return _STEP_HANDLERS.get(step)


def register_menu_option(selector: str, name: str, enter: MenuEntry) -> None:
    _MENU_OPTIONS[selector] = MenuOption(selector, name, enter)
    logger.debug("Menu option registered: %s -> %s", selector, name)


def get_menu_option(selector: str) -> Optional[MenuOption]:
    return _MENU_OPTIONS.get(selector.strip())


def get_registered_options() -> list[str]:
    """Return menu option names in selector order."""
    return [_MENU_OPTIONS[key].name for key in sorted(_MENU_OPTIONS)]


def select_menu_option(ctx: FlowContext, token: str) -> UssdResponse:
    """Main-menu step: route the selector to its sub-flow."""
    option = get_menu_option(token)
    if option is None:
        logger.info("Invalid main menu selector")
        return ctx.end_message("invalid_option")
    logger.debug("Main menu -> %s", option.name)
    return option.enter(ctx)


def _auto_register() -> None:
    """Auto-register all built-in flows. Called once at import time."""
    from smarthealth.flows import history, language, login, logout, paid, registration, trial

    register_step(UssdStep.REGISTRATION_NAME, registration.capture_name)
    register_step(UssdStep.REGISTRATION_PIN, registration.capture_pin)
    register_step(UssdStep.LOGIN_PIN, login.verify)
    register_step(UssdStep.MAIN_MENU, select_menu_option)
    register_step(UssdStep.TRIAL_SYMPTOMS, trial.capture_symptoms)
    register_step(UssdStep.PAID_SELECT_DOCTOR, paid.select_doctor)
    register_step(UssdStep.PAID_SELECT_PAYMENT, paid.select_payment)
    register_step(UssdStep.PAID_SYMPTOMS, paid.capture_symptoms)
    register_step(UssdStep.LANGUAGE_SELECT, language.select)

    register_menu_option("1", "trial", trial.enter)
    register_menu_option("2", "paid", paid.enter)
    register_menu_option("3", "history", history.enter)
    register_menu_option("4", "language", language.enter)
    register_menu_option("5", "logout", logout.enter)


_auto_register()
