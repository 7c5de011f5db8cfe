"""Tests for call scripts, provider renderers and webhook normalization."""

import pytest

from smarthealth.schemas.channel_schema import VoiceEvent
from smarthealth.voice.renderers import (
    AfricasTalkingRenderer,
    TwilioRenderer,
    absolute_url,
    get_renderer,
)
from smarthealth.voice.script import CallScript, GetDigits

BASE = "http://localhost:8000"


@pytest.fixture
def menu_script():
    return (
        CallScript()
        .gather("/api/voice/menu", "Press 1 for trial.")
        .say("Goodbye.")
        .hangup()
    )


class TestCallScript:
    def test_builder_keeps_order(self, menu_script):
        assert menu_script.kinds() == ["GetDigits", "Say", "Hangup"]

    def test_find_first_action(self, menu_script):
        assert menu_script.find(GetDigits).prompt == "Press 1 for trial."

    def test_absolute_url(self):
        assert absolute_url("/api/voice/menu") == f"{BASE}/api/voice/menu"
        assert absolute_url("https://cdn.example.com/a.mp3") == "https://cdn.example.com/a.mp3"


class TestTwilioRenderer:
    def test_gather_menu(self, menu_script):
        xml = TwilioRenderer().render(menu_script)
        assert "<Response>" in xml
        assert "<Gather" in xml
        assert f'action="{BASE}/api/voice/menu"' in xml
        assert 'numDigits="1"' in xml
        assert "Press 1 for trial.</Say>" in xml
        assert "<Hangup />" in xml or "<Hangup/>" in xml

    def test_record_with_transcription(self):
        script = CallScript().record(
            "/api/voice/process-symptoms", "Describe your symptoms.",
            max_length=60, transcribe_callback="/api/voice/transcription",
        )
        xml = TwilioRenderer().render(script)
        assert "<Record" in xml
        assert 'maxLength="60"' in xml
        assert f'transcribeCallback="{BASE}/api/voice/transcription"' in xml

    def test_dial_bridges_number(self):
        script = CallScript().dial(
            "+254711000001", action="/api/voice/call-completed", status_callback="/api/voice/call-status",
        )
        xml = TwilioRenderer().render(script)
        assert "<Dial" in xml
        assert "+254711000001</Number>" in xml
        assert f'action="{BASE}/api/voice/call-completed"' in xml

    def test_hold_and_redirect(self):
        script = CallScript().play("https://cdn.example.com/hold.mp3").redirect("/api/voice/wait-for-doctor")
        xml = TwilioRenderer().render(script)
        assert "https://cdn.example.com/hold.mp3</Play>" in xml
        assert f"{BASE}/api/voice/wait-for-doctor</Redirect>" in xml


class TestAfricasTalkingRenderer:
    def test_say_only(self):
        xml = AfricasTalkingRenderer().render(CallScript().say("Hello"))
        assert xml == '<?xml version="1.0" encoding="UTF-8"?><Response><Say>Hello</Say></Response>'

    def test_get_digits(self, menu_script):
        xml = AfricasTalkingRenderer().render(menu_script)
        assert "<GetDigits" in xml
        assert f'callbackUrl="{BASE}/api/voice/menu"' in xml
        assert "<Say>Press 1 for trial.</Say></GetDigits>" in xml

    def test_record(self):
        xml = AfricasTalkingRenderer().render(
            CallScript().record("/api/voice/process-symptoms", "Describe your symptoms.")
        )
        assert "<Record" in xml
        assert 'finishOnKey="#"' in xml
        assert 'playBeep="true"' in xml

    def test_dial(self):
        xml = AfricasTalkingRenderer().render(CallScript().dial("+254711000001"))
        assert 'phoneNumbers="+254711000001"' in xml

    def test_hangup_stops_rendering(self):
        xml = AfricasTalkingRenderer().render(CallScript().say("a").hangup().say("b"))
        assert "<Say>a</Say>" in xml
        assert "<Say>b</Say>" not in xml

    def test_text_is_escaped(self):
        xml = AfricasTalkingRenderer().render(CallScript().say("Fees < 500 & more"))
        assert "Fees &lt; 500 &amp; more" in xml


class TestRendererRegistry:
    def test_lookup_by_name(self):
        assert isinstance(get_renderer("twilio"), TwilioRenderer)
        assert isinstance(get_renderer("AfricasTalking"), AfricasTalkingRenderer)

    def test_unknown_provider(self):
        with pytest.raises(KeyError, match="not registered"):
            get_renderer("skype")


class TestVoiceEvent:
    def test_twilio_form(self):
        event = VoiceEvent.from_form({
            "CallSid": "CA123",
            "From": "+254700000001",
            "Digits": "2",
            "RecordingUrl": "https://api.twilio.com/rec.mp3",
            "CallStatus": "in-progress",
            "DialCallDuration": "42",
        })
        assert event.call_id == "CA123"
        assert event.caller == "+254700000001"
        assert event.digits == "2"
        assert event.recording_url == "https://api.twilio.com/rec.mp3"
        assert event.duration_seconds == 42
        assert event.is_active

    def test_africastalking_form(self):
        event = VoiceEvent.from_form({
            "sessionId": "ATVId_1",
            "callerNumber": "+254700000001",
            "dtmfDigits": "1",
            "isActive": "0",
            "durationInSeconds": "12.0",
        })
        assert event.call_id == "ATVId_1"
        assert event.digits == "1"
        assert event.duration_seconds == 12
        assert not event.is_active

    def test_empty_values_ignored(self):
        event = VoiceEvent.from_form({"CallSid": "CA1", "Digits": ""})
        assert event.digits is None
