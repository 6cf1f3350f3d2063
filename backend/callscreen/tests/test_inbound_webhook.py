import json
import time

import pytest

from callscreen.api import inbound as inbound_api
from callscreen.core.config import settings
from callscreen.main import app
from callscreen.models import CallRecord, NotificationOutbox, Qualification
from callscreen.services.elevenlabs import ConversationProviderError
from callscreen.services.signature import build_signature_header

SECRET = "wsec_test"


def _post(client, body, headers=None):
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return client.post("/api/inbound", content=raw, headers={"Content-Type": "application/json", **(headers or {})})


@pytest.fixture()
def signed(monkeypatch):
    monkeypatch.setattr(settings, "elevenlabs_webhook_secret", SECRET)

    def _headers(raw, timestamp=None):
        return {"elevenlabs-signature": build_signature_header(raw, SECRET, timestamp=timestamp)}

    return _headers


def test_webhook_processes_call(client, db, make_payload):
    response = _post(client, {"data": make_payload()})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processed"
    assert body["callRecord"]["conversation_id"] == "conv-1"
    assert body["callRecord"]["qualification"] == "QUALIFIED"
    assert body["callRecord"]["qualified"] is True
    record = db.query(CallRecord).one()
    assert record.first_name == "Dana"
    assert record.raw_data["agent_id"] == "agent-1"


def test_duplicate_delivery_updates_in_place(client, db, make_payload):
    _post(client, {"data": make_payload(first_name="Dana")})
    response = _post(client, {"data": make_payload(first_name="Danielle", violations=True)})

    assert response.status_code == 200
    record = db.query(CallRecord).one()
    assert record.first_name == "Danielle"
    assert record.qualification is Qualification.NOT_QUALIFIED


def test_pending_when_no_answers_collected(client, make_payload):
    response = _post(client, {"data": make_payload(with_results=False)})
    assert response.json()["callRecord"]["qualification"] == "PENDING"
    assert response.json()["callRecord"]["qualified"] is None


def test_valid_signature_accepted(client, signed, make_payload):
    raw = json.dumps({"data": make_payload()}).encode()
    response = _post(client, raw, signed(raw))
    assert response.status_code == 200


def test_missing_signature_rejected(client, db, signed, make_payload):
    response = _post(client, {"data": make_payload()})
    assert response.status_code == 401
    assert db.query(CallRecord).count() == 0


def test_legacy_signature_header_accepted(client, signed, make_payload):
    raw = json.dumps({"data": make_payload()}).encode()
    headers = {"x-elevenlabs-signature": signed(raw)["elevenlabs-signature"]}
    assert _post(client, raw, headers).status_code == 200


def test_stale_signature_rejected(client, db, signed, make_payload):
    raw = json.dumps({"data": make_payload()}).encode()
    response = _post(client, raw, signed(raw, timestamp=int(time.time()) - 31 * 60))
    assert response.status_code == 401
    assert db.query(CallRecord).count() == 0


def test_tampered_body_rejected(client, signed, make_payload):
    raw = json.dumps({"data": make_payload()}).encode()
    headers = signed(raw)
    tampered = raw.replace(b"Dana", b"Mallory")
    assert _post(client, tampered, headers).status_code == 401


def test_malformed_json_rejected(client):
    assert _post(client, b"{not json").status_code == 400


@pytest.mark.parametrize("body", [{}, {"data": None}, {"data": "conv-1"}, []])
def test_missing_data_rejected(client, body):
    assert _post(client, body).status_code == 400


def test_missing_conversation_id_rejected(client, make_payload):
    payload = make_payload()
    del payload["conversation_id"]
    assert _post(client, {"data": payload}).status_code == 400


def test_other_agent_ignored(client, db, monkeypatch, make_payload):
    monkeypatch.setattr(settings, "elevenlabs_agent_id", "agent-main")
    response = _post(client, {"data": make_payload(agent_id="agent-other")})
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert "agent-other" in response.json()["reason"]
    assert db.query(CallRecord).count() == 0


def test_configured_agent_processed(client, monkeypatch, make_payload):
    monkeypatch.setattr(settings, "elevenlabs_agent_id", "agent-main")
    response = _post(client, {"data": make_payload(agent_id="agent-main")})
    assert response.json()["status"] == "processed"


def test_full_conversation_fetched_from_provider(client, db, make_payload):
    class Provider:
        def get_conversation_details(self, conversation_id):
            return make_payload(conversation_id=conversation_id, first_name="Fetched")

    app.state.conversation_provider = Provider()
    webhook = {"conversation_id": "conv-1", "agent_id": "agent-1"}
    response = _post(client, {"data": webhook})

    assert response.status_code == 200
    assert db.query(CallRecord).one().first_name == "Fetched"


def test_provider_failure_falls_back_to_webhook_payload(client, db, make_payload):
    class Provider:
        def get_conversation_details(self, conversation_id):
            raise ConversationProviderError("timeout")

    app.state.conversation_provider = Provider()
    response = _post(client, {"data": make_payload(first_name="FromWebhook")})

    assert response.status_code == 200
    assert db.query(CallRecord).one().first_name == "FromWebhook"


def test_internal_error_returns_500(client, monkeypatch, make_payload):
    def explode(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(inbound_api, "ingest_conversation", explode)
    response = _post(client, {"data": make_payload()})
    assert response.status_code == 500


def test_qualified_call_queues_one_notice(client, db, make_payload):
    _post(client, {"data": make_payload()})
    _post(client, {"data": make_payload()})
    notice = db.query(NotificationOutbox).one()
    assert notice.status == "pending"
    assert notice.call_record_id == db.query(CallRecord).one().id


def test_unqualified_call_queues_nothing(client, db, make_payload):
    _post(client, {"data": make_payload(cdl=False)})
    assert db.query(NotificationOutbox).count() == 0
