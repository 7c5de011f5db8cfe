"""Per-request state shared by the USSD flow handlers."""

from dataclasses import dataclass
from typing import Any, Optional

from smarthealth.config import settings
from smarthealth.conversation.state_machine import SessionStateMachine, TransitionTrigger
from smarthealth.prompts.ussd_messages import message
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.schemas.entity_schema import Subscriber
from smarthealth.schemas.session_schema import Session


@dataclass
class FlowContext:
    """
    Everything a step handler needs for one token.

    Handlers fire triggers through ``advance`` and build responses with
    ``con``/``end``. Two flags tell the dispatcher how to persist:
    ``discard`` drops every session write (authorization rejections) and
    ``keep_session`` keeps the session open after a terminal answer so a
    gateway retry can resume the failed step.
    """
    session: Session
    subscriber: Optional[Subscriber]
    machine: SessionStateMachine
    discard: bool = False
    keep_session: bool = False

    @property
    def language(self) -> str:
        if self.subscriber is not None:
            return self.subscriber.language.value
        return settings.brand.default_language

    def advance(self, trigger: TransitionTrigger) -> None:
        self.session.step = self.machine.transition(trigger)

    def con(self, text: str) -> UssdResponse:
        return UssdResponse.con(text)

    def con_message(self, key: str, **values: Any) -> UssdResponse:
        return UssdResponse.con(message(key, self.language, **values))

    def end(self, text: str) -> UssdResponse:
        """Terminal answer. The session is closed unless ``keep_session`` is set."""
        if not self.keep_session and not self.machine.is_terminal():
            self.advance(TransitionTrigger.SESSION_ENDED)
        return UssdResponse.end(text)

    def end_message(self, key: str, **values: Any) -> UssdResponse:
        return self.end(message(key, self.language, **values))
