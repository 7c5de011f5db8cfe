"""Tests for the USSD, voice and health HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from smarthealth import __version__
from smarthealth.api import app
from smarthealth.repositories import cases, sessions
from tests.conftest import PHONE, PIN, SYMPTOMS, make_subscriber


@pytest.fixture
def client():
    return TestClient(app)


def ussd(client, text: str, session_id: str = "ATUid_api"):
    return client.post("/api/ussd", data={
        "sessionId": session_id,
        "serviceCode": "*384*34153#",
        "phoneNumber": PHONE,
        "text": text,
    })


class TestUssdEndpoint:
    def test_new_user_gets_con(self, client):
        response = ussd(client, "")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("CON ")
        assert "You are a new user" in response.text

    def test_trial_over_http(self, client):
        subscriber = make_subscriber()
        ussd(client, "")
        ussd(client, PIN)
        ussd(client, f"{PIN}*1")
        response = ussd(client, f"{PIN}*1*{SYMPTOMS}")
        assert response.text.startswith("END Received!")
        assert len(cases.list_for_subscriber(subscriber.id)) == 1
        assert sessions.get("ATUid_api") is None

    def test_json_body_accepted(self, client):
        response = client.post("/api/ussd", json={
            "sessionId": "ATUid_json", "phoneNumber": PHONE, "text": "",
        })
        assert response.status_code == 200
        assert response.text.startswith("CON ")

    def test_missing_fields_rejected(self, client):
        response = client.post("/api/ussd", data={"text": ""})
        assert response.status_code == 400
        assert response.text == "END Invalid request"


class TestVoiceEndpoints:
    def test_incoming_returns_xml(self, client):
        response = client.post("/api/voice/incoming", data={
            "sessionId": "ATVId_api", "callerNumber": PHONE, "isActive": "1",
        })
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Response>" in response.text
        assert "/api/voice/menu" in response.text
        assert sessions.get("ATVId_api") is not None

    def test_menu_choice(self, client):
        client.post("/api/voice/incoming", data={"sessionId": "ATVId_api", "callerNumber": PHONE})
        response = client.post("/api/voice/menu", data={"sessionId": "ATVId_api", "dtmfDigits": "1"})
        assert "/api/voice/process-symptoms" in response.text

    def test_call_status_acknowledged(self, client):
        response = client.post("/api/voice/call-status", data={
            "CallSid": "CA_api", "CallStatus": "ringing",
        })
        assert response.status_code == 200
        assert response.text == "OK"

    def test_doctor_call_unknown_request(self, client):
        response = client.post("/api/voice/doctor-call?requestId=CQ-NOPE")
        assert response.status_code == 200
        assert "Invalid request." in response.text


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "SmartHealth"
        assert body["version"] == __version__
        assert body["active_sessions"] == 0
