import base64

import pytest
import requests

from callscreen.core.config import Settings
from callscreen.services.elevenlabs import ConversationProviderError, ElevenLabsClient, build_conversation_provider
from callscreen.services.mailer import Attachment, DisabledMailer, OutgoingEmail, PostmarkMailer, build_mailer


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def _email(**overrides):
    values = {"to": "boss@example.com", "subject": "Weekly", "html_body": "<p>hi</p>", "text_body": "hi"}
    values.update(overrides)
    return OutgoingEmail(**values)


def test_postmark_payload_and_success(monkeypatch):
    mailer = PostmarkMailer("token-123", "reports@truckrecruit.pro", default_stream="outbound")
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeResponse(200, {"ErrorCode": 0, "MessageID": "pm-1"})

    monkeypatch.setattr(mailer.session, "post", fake_post)
    result = mailer.send(
        _email(
            attachments=[Attachment(name="calls.csv", content=b"a,b\n", content_type="text/csv")],
            metadata={"reportConfigId": "1"},
            message_stream="reports",
        )
    )

    assert result.success and result.message_id == "pm-1"
    assert captured["url"] == "https://api.postmarkapp.com/email"
    assert captured["headers"]["X-Postmark-Server-Token"] == "token-123"
    body = captured["json"]
    assert body["MessageStream"] == "reports"
    assert body["TrackLinks"] == "TextOnly"
    assert body["Metadata"] == {"reportConfigId": "1"}
    assert base64.b64decode(body["Attachments"][0]["Content"]) == b"a,b\n"


def test_postmark_default_stream(monkeypatch):
    mailer = PostmarkMailer("token-123", "reports@truckrecruit.pro", default_stream="outbound")
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(json)
        return FakeResponse(200, {"ErrorCode": 0, "MessageID": "pm-2"})

    monkeypatch.setattr(mailer.session, "post", fake_post)
    mailer.send(_email())
    assert captured["MessageStream"] == "outbound"
    assert "Attachments" not in captured


def test_postmark_rejection_is_a_failed_result(monkeypatch):
    mailer = PostmarkMailer("token-123", "reports@truckrecruit.pro")
    monkeypatch.setattr(
        mailer.session,
        "post",
        lambda *args, **kwargs: FakeResponse(422, {"ErrorCode": 406, "Message": "Inactive recipient"}),
    )
    result = mailer.send(_email())
    assert not result.success
    assert result.error == "Inactive recipient"


def test_postmark_transport_error_is_a_failed_result(monkeypatch):
    mailer = PostmarkMailer("token-123", "reports@truckrecruit.pro")

    def boom(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(mailer.session, "post", boom)
    result = mailer.send(_email())
    assert not result.success
    assert "unreachable" in result.error


def test_build_mailer_without_token_is_disabled():
    mailer = build_mailer(Settings(postmark_server_token=""))
    assert isinstance(mailer, DisabledMailer)
    assert mailer.send(_email()).error == "Postmark not configured"


def test_elevenlabs_fetches_conversation(monkeypatch):
    client = ElevenLabsClient("xi-key", "https://api.elevenlabs.io/v1/", timeout=5)
    captured = {}

    def fake_get(url, headers, timeout):
        captured.update(url=url, headers=headers, timeout=timeout)
        return FakeResponse(200, {"conversation_id": "conv-1", "transcript": []})

    monkeypatch.setattr(client.session, "get", fake_get)
    payload = client.get_conversation_details("conv-1")

    assert payload["conversation_id"] == "conv-1"
    assert captured["url"] == "https://api.elevenlabs.io/v1/convai/conversations/conv-1"
    assert captured["headers"]["xi-api-key"] == "xi-key"
    assert captured["timeout"] == 5


@pytest.mark.parametrize("response", [FakeResponse(404, {"detail": "missing"}), FakeResponse(200, None), FakeResponse(200, [1])])
def test_elevenlabs_errors_raise_provider_error(monkeypatch, response):
    client = ElevenLabsClient("xi-key", "https://api.elevenlabs.io/v1")
    monkeypatch.setattr(client.session, "get", lambda *args, **kwargs: response)
    with pytest.raises(ConversationProviderError):
        client.get_conversation_details("conv-1")


def test_no_api_key_means_no_provider():
    assert build_conversation_provider(Settings(elevenlabs_api_key="")) is None
