from smarthealth.conversation.guards import GuardPipeline
from smarthealth.conversation.state_machine import (
    SessionStateMachine,
    TransitionTrigger,
    UssdStep,
    VoiceStep,
)

__all__ = [
    "SessionStateMachine",
    "UssdStep",
    "VoiceStep",
    "TransitionTrigger",
    "GuardPipeline",
]
