"""Provider mail transports (one HTTP call per message)."""

from __future__ import annotations

import base64
from email.message import EmailMessage

import httpx

from enrollproof.core.exceptions import EmailSendError


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    return f"HTTP {resp.status_code}"


def build_raw_message(sender: str, to: str, subject: str, text: str) -> str:
    """RFC 822 plain-text message, base64url without padding."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text, charset="utf-8")
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii").rstrip("=")


class GmailTransport:
    """Gmail API ``users/me/messages/send``."""

    def __init__(self, client: httpx.Client, send_url: str) -> None:
        self._client = client
        self._send_url = send_url

    def send(self, *, access_token: str, sender: str, to: str, subject: str, text: str) -> str | None:
        try:
            resp = self._client.post(
                self._send_url,
                headers={"Authorization": f"Bearer {access_token}"},
                json={"raw": build_raw_message(sender, to, subject, text)},
            )
        except httpx.HTTPError as exc:
            raise EmailSendError(f"Gmail send failed: {exc}") from exc
        if resp.is_error:
            raise EmailSendError(f"Gmail send failed: {_error_detail(resp)}")
        try:
            return resp.json().get("id")
        except ValueError:
            return None


class MicrosoftGraphTransport:
    """Microsoft Graph ``me/sendMail``; Graph returns 202 with no message id."""

    def __init__(self, client: httpx.Client, send_url: str) -> None:
        self._client = client
        self._send_url = send_url

    def send(self, *, access_token: str, sender: str, to: str, subject: str, text: str) -> str | None:
        payload = {
            "message": {
                "subject": subject,
                "body": {"contentType": "Text", "content": text},
                "toRecipients": [{"emailAddress": {"address": to}}],
            },
            "saveToSentItems": True,
        }
        try:
            resp = self._client.post(
                self._send_url,
                headers={"Authorization": f"Bearer {access_token}"},
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise EmailSendError(f"Microsoft Graph send failed: {exc}") from exc
        if resp.is_error:
            raise EmailSendError(f"Microsoft Graph send failed: {_error_detail(resp)}")
        return resp.headers.get("request-id")
