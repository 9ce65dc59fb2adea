"""Tests for provider mail transports and the dispatcher."""

from __future__ import annotations

import base64
import json
from datetime import timedelta
from email import message_from_bytes, policy

import httpx
import pytest

from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import EmailSendError
from enrollproof.core.timeutil import utc_now
from enrollproof.models.notification import RenderedEmail, SenderAccount, SenderAccountStatus, SenderProvider
from enrollproof.services.notify.dispatcher import NotificationDispatcher
from enrollproof.services.notify.transport import GmailTransport, MicrosoftGraphTransport, build_raw_message
from tests.fakes import MemoryCacheBackend, MemoryRecordStore

GMAIL_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
GRAPH_URL = "https://graph.microsoft.com/v1.0/me/sendMail"


def _decode_raw(raw: str):
    padded = raw + "=" * (-len(raw) % 4)
    return message_from_bytes(base64.urlsafe_b64decode(padded), policy=policy.default)


class Recorder:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def test_raw_message_is_unpadded_base64url():
    raw = build_raw_message("a@x.com", "b@y.com", "Hello", "Body text")
    assert "=" not in raw
    msg = _decode_raw(raw)
    assert msg["From"] == "a@x.com"
    assert msg["To"] == "b@y.com"
    assert msg["Subject"] == "Hello"
    assert "Body text" in msg.get_content()


class TestGmail:
    def test_posts_raw_message_with_bearer(self):
        recorder = Recorder(httpx.Response(200, json={"id": "gmail-123"}))
        transport = GmailTransport(httpx.Client(transport=httpx.MockTransport(recorder)), GMAIL_URL)

        message_id = transport.send(access_token="tok", sender="a@x.com", to="b@y.com", subject="S", text="T")

        assert message_id == "gmail-123"
        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert _decode_raw(json.loads(request.content)["raw"])["To"] == "b@y.com"

    def test_error_response_raises(self):
        recorder = Recorder(httpx.Response(403, json={"error": {"message": "Insufficient permission"}}))
        transport = GmailTransport(httpx.Client(transport=httpx.MockTransport(recorder)), GMAIL_URL)
        with pytest.raises(EmailSendError, match="Insufficient permission"):
            transport.send(access_token="tok", sender="a@x.com", to="b@y.com", subject="S", text="T")


class TestMicrosoftGraph:
    def test_posts_json_message(self):
        recorder = Recorder(httpx.Response(202, headers={"request-id": "req-9"}))
        transport = MicrosoftGraphTransport(httpx.Client(transport=httpx.MockTransport(recorder)), GRAPH_URL)

        assert transport.send(access_token="tok", sender="a@x.com", to="b@y.com", subject="S", text="T") == "req-9"

        payload = json.loads(recorder.requests[0].content)
        assert payload["message"]["subject"] == "S"
        assert payload["message"]["body"] == {"contentType": "Text", "content": "T"}
        assert payload["message"]["toRecipients"] == [{"emailAddress": {"address": "b@y.com"}}]

    def test_error_response_raises(self):
        recorder = Recorder(httpx.Response(401, json={"error": {"code": "InvalidAuthenticationToken", "message": "expired"}}))
        transport = MicrosoftGraphTransport(httpx.Client(transport=httpx.MockTransport(recorder)), GRAPH_URL)
        with pytest.raises(EmailSendError):
            transport.send(access_token="tok", sender="a@x.com", to="b@y.com", subject="S", text="T")


class TestDispatcher:
    def test_routes_by_provider_with_stored_token(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(202)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        dispatcher = NotificationDispatcher(
            settings=AppSettings(), store=MemoryRecordStore(), cache=MemoryCacheBackend(), http_client=client
        )
        account = SenderAccount(
            provider=SenderProvider.MICROSOFT,
            user_email="hr@acme.example",
            status=SenderAccountStatus.APPROVED,
            access_token="valid",
            refresh_token="r",
            expires_at=utc_now() + timedelta(hours=1),
        )

        dispatcher.dispatch(account, "amy@acme.example", RenderedEmail(subject="S", text="T"))
        dispatcher.close()

        assert seen == [GRAPH_URL]
        assert not client.is_closed
