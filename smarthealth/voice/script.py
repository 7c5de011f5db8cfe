"""
Provider-neutral call-control documents.

The call flow describes what the call should do next as a ``CallScript``:
an ordered list of abstract actions. Renderers turn the script into the
provider's own markup. Action targets are endpoint paths such as
``/api/voice/menu``; renderers resolve them against ``API_BASE_URL``.

Usage:
    script = CallScript().gather("/api/voice/menu", "Press 1 ...").say("Goodbye.")
    xml = get_renderer().render(script)
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class Say:
    text: str


@dataclass(frozen=True)
class GetDigits:
    """Speak ``prompt`` while collecting digits, then post them to ``action``."""
    action: str
    prompt: str
    num_digits: int = 1
    timeout: int = 10


@dataclass(frozen=True)
class Record:
    action: str
    prompt: str
    max_length: int = 60
    finish_on_key: str = "#"
    transcribe_callback: Optional[str] = None


@dataclass(frozen=True)
class Play:
    url: str
    loop: int = 1


@dataclass(frozen=True)
class Dial:
    """Bridge the call to ``number``; ``action`` receives the outcome."""
    number: str
    action: Optional[str] = None
    status_callback: Optional[str] = None
    caller_id: Optional[str] = None
    timeout: int = 30


@dataclass(frozen=True)
class Redirect:
    target: str


@dataclass(frozen=True)
class Hangup:
    pass


Action = Union[Say, GetDigits, Record, Play, Dial, Redirect, Hangup]


@dataclass
class CallScript:
    """Ordered call-control actions with a fluent builder interface."""
    actions: list[Action] = field(default_factory=list)

    def say(self, text: str) -> "CallScript":
        self.actions.append(Say(text))
        return self

    def gather(self, action: str, prompt: str, num_digits: int = 1, timeout: int = 10) -> "CallScript":
        self.actions.append(GetDigits(action, prompt, num_digits, timeout))
        return self

    def record(
        self,
        action: str,
        prompt: str,
        max_length: int = 60,
        transcribe_callback: Optional[str] = None,
    ) -> "CallScript":
        self.actions.append(Record(
            action, prompt, max_length=max_length, transcribe_callback=transcribe_callback,
        ))
        return self

    def play(self, url: str, loop: int = 1) -> "CallScript":
        self.actions.append(Play(url, loop))
        return self

    def dial(
        self,
        number: str,
        action: Optional[str] = None,
        status_callback: Optional[str] = None,
        caller_id: Optional[str] = None,
    ) -> "CallScript":
        self.actions.append(Dial(number, action, status_callback, caller_id))
        return self

    def redirect(self, target: str) -> "CallScript":
        self.actions.append(Redirect(target))
        return self

    def hangup(self) -> "CallScript":
        self.actions.append(Hangup())
        return self

    def kinds(self) -> list[str]:
        """Action class names in order, e.g. ``['Say', 'Play', 'Redirect']``."""
        return [type(action).__name__ for action in self.actions]

    def find(self, kind: type) -> Optional[Action]:
        for action in self.actions:
            if isinstance(action, kind):
                return action
        return None
