import asyncio

import pytest
import requests

from config.realtime_settings import PushSettings
from schemas.push_token import PushPayload
from services.push_provider import FcmPushProvider, NullPushProvider
from utils.errors import DeliveryFailure

PAYLOAD = PushPayload(title="New answer", body="Your question has a new answer.", link="/questions/1#answer-2",
                      data={"notificationId": 10, "questionId": 1, "answerId": 2})


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


@pytest.fixture
def provider():
    settings = PushSettings(push_enabled=True, fcm_project_id="qa-portal", fcm_access_token="secret")
    fcm = FcmPushProvider(settings)
    yield fcm
    fcm.close()


def stub_post(provider, monkeypatch, response=None, error=None):
    sent = []

    def post(url, json, timeout):
        sent.append((url, json))
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(provider.session, "post", post)
    return sent


def test_message_shape(provider, monkeypatch):
    sent = stub_post(provider, monkeypatch, FakeResponse(200, {"name": "projects/qa-portal/messages/1"}))

    asyncio.run(provider.send("device-token", PAYLOAD))

    url, body = sent[0]
    assert url == "https://fcm.googleapis.com/v1/projects/qa-portal/messages:send"
    message = body["message"]
    assert message["token"] == "device-token"
    assert message["notification"] == {"title": "New answer", "body": "Your question has a new answer."}
    assert message["data"] == {"notificationId": "10", "questionId": "1", "answerId": "2", "link": "/questions/1#answer-2"}
    assert message["webpush"]["fcm_options"]["link"] == "/questions/1#answer-2"


def test_unregistered_token_is_permanent(provider, monkeypatch):
    body = {"error": {"status": "NOT_FOUND", "details": [{"errorCode": "UNREGISTERED"}]}}
    stub_post(provider, monkeypatch, FakeResponse(404, body))

    with pytest.raises(DeliveryFailure) as exc:
        asyncio.run(provider.send("device-token-expired", PAYLOAD))

    assert exc.value.permanent is True
    assert "UNREGISTERED" in exc.value.detail
    assert exc.value.target == "device-token..."


def test_invalid_argument_is_permanent(provider, monkeypatch):
    stub_post(provider, monkeypatch, FakeResponse(400, {"error": {"status": "INVALID_ARGUMENT"}}))

    with pytest.raises(DeliveryFailure) as exc:
        asyncio.run(provider.send("device-token", PAYLOAD))

    assert exc.value.permanent is True


def test_server_error_is_transient(provider, monkeypatch):
    stub_post(provider, monkeypatch, FakeResponse(503))

    with pytest.raises(DeliveryFailure) as exc:
        asyncio.run(provider.send("device-token", PAYLOAD))

    assert exc.value.permanent is False


def test_timeout_is_transient(provider, monkeypatch):
    stub_post(provider, monkeypatch, error=requests.exceptions.Timeout("slow"))

    with pytest.raises(DeliveryFailure) as exc:
        asyncio.run(provider.send("device-token", PAYLOAD))

    assert exc.value.permanent is False


def test_null_provider_sends_nothing():
    assert asyncio.run(NullPushProvider().send("device-token", PAYLOAD)) is None


def test_settings_validity():
    assert not PushSettings(push_enabled=False, fcm_project_id="p", fcm_access_token="t").is_valid()
    assert not PushSettings(push_enabled=True, fcm_project_id="", fcm_access_token="t").is_valid()
    assert PushSettings(push_enabled=True, fcm_project_id="p", fcm_access_token="t").is_valid()
    assert "secret" not in repr(PushSettings(push_enabled=True, fcm_project_id="p", fcm_access_token="secret"))
