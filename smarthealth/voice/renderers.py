"""
Renderers turning a ``CallScript`` into provider markup.

Both providers receive the same script; only the tag names and
attributes differ. Adding a provider means adding a renderer here and
registering it in ``RENDERERS``.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Optional, Protocol

from twilio.twiml.voice_response import VoiceResponse

from smarthealth.config import settings
from smarthealth.voice.script import (
    CallScript,
    Dial,
    GetDigits,
    Hangup,
    Play,
    Record,
    Redirect,
    Say,
)

logger = logging.getLogger(__name__)

XML_MEDIA_TYPE = "application/xml"


def absolute_url(target: str) -> str:
    if target.startswith("http://") or target.startswith("https://"):
        return target
    return f"{settings.voice.api_base_url}{target}"


class CallRenderer(Protocol):
    name: str

    def render(self, script: CallScript) -> str: ...


class TwilioRenderer:
    """TwiML via the ``twilio`` helper library."""

    name = "twilio"
    voice = "alice"
    language = "en-US"

    def render(self, script: CallScript) -> str:
        response = VoiceResponse()
        for action in script.actions:
            if isinstance(action, Say):
                response.say(action.text, voice=self.voice, language=self.language)
            elif isinstance(action, GetDigits):
                gather = response.gather(
                    num_digits=action.num_digits,
                    action=absolute_url(action.action),
                    method="POST",
                    timeout=action.timeout,
                )
                gather.say(action.prompt, voice=self.voice, language=self.language)
            elif isinstance(action, Record):
                response.say(action.prompt, voice=self.voice, language=self.language)
                kwargs = {}
                if action.transcribe_callback:
                    kwargs = {
                        "transcribe": True,
                        "transcribe_callback": absolute_url(action.transcribe_callback),
                    }
                response.record(
                    action=absolute_url(action.action),
                    method="POST",
                    max_length=action.max_length,
                    finish_on_key=action.finish_on_key,
                    **kwargs,
                )
            elif isinstance(action, Play):
                response.play(action.url, loop=action.loop)
            elif isinstance(action, Dial):
                dial = response.dial(
                    action=absolute_url(action.action) if action.action else None,
                    method="POST",
                    timeout=action.timeout,
                    caller_id=action.caller_id or None,
                )
                dial.number(
                    action.number,
                    status_callback_event="answered completed",
                    status_callback=absolute_url(action.status_callback) if action.status_callback else None,
                    status_callback_method="POST",
                )
            elif isinstance(action, Redirect):
                response.redirect(absolute_url(action.target), method="POST")
            elif isinstance(action, Hangup):
                response.hangup()
        return str(response)


class AfricasTalkingRenderer:
    """Africa's Talking voice XML."""

    name = "africastalking"

    def render(self, script: CallScript) -> str:
        root = ET.Element("Response")
        for action in script.actions:
            if isinstance(action, Say):
                ET.SubElement(root, "Say").text = action.text
            elif isinstance(action, GetDigits):
                get_digits = ET.SubElement(root, "GetDigits", {
                    "timeout": str(action.timeout),
                    "finishOnKey": "#",
                    "numDigits": str(action.num_digits),
                    "callbackUrl": absolute_url(action.action),
                })
                ET.SubElement(get_digits, "Say").text = action.prompt
            elif isinstance(action, Record):
                record = ET.SubElement(root, "Record", {
                    "finishOnKey": action.finish_on_key,
                    "maxLength": str(action.max_length),
                    "trimSilence": "true",
                    "playBeep": "true",
                    "callbackUrl": absolute_url(action.action),
                })
                ET.SubElement(record, "Say").text = action.prompt
            elif isinstance(action, Play):
                ET.SubElement(root, "Play", {"url": action.url})
            elif isinstance(action, Dial):
                attrs = {"phoneNumbers": action.number, "record": "true", "sequential": "true"}
                if action.caller_id:
                    attrs["callerId"] = action.caller_id
                ET.SubElement(root, "Dial", attrs)
            elif isinstance(action, Redirect):
                ET.SubElement(root, "Redirect").text = absolute_url(action.target)
            elif isinstance(action, Hangup):
                # The call ends once the document runs out of actions
                break
        body = ET.tostring(root, encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>{body}'


RENDERERS: dict[str, CallRenderer] = {
    TwilioRenderer.name: TwilioRenderer(),
    AfricasTalkingRenderer.name: AfricasTalkingRenderer(),
}


def get_renderer(provider: Optional[str] = None) -> CallRenderer:
    """Return the renderer for ``provider`` (defaults to ``VOICE_PROVIDER``).

    Raises:
        KeyError: If the provider is unknown.
    """
    name = (provider or settings.voice.provider).lower()
    if name not in RENDERERS:
        raise KeyError(f"Voice provider '{name}' not registered. Available: {list(RENDERERS)}")
    return RENDERERS[name]
