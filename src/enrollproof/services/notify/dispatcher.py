"""NotificationDispatcher: token + transport for one outbound email."""

from __future__ import annotations

import logging
from typing import Mapping

import httpx

from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import EmailSendError
from enrollproof.core.protocols import ICacheBackend, IMailTransport, IRecordStore
from enrollproof.models.notification import RenderedEmail, SenderAccount, SenderProvider
from enrollproof.services.notify.oauth import AccessTokenService, google_refresher, microsoft_refresher
from enrollproof.services.notify.transport import GmailTransport, MicrosoftGraphTransport

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends a rendered email from a connected sender account.

    Configuration is injected; the dispatcher never reads the environment.
    Tests pass ``http_client`` built on ``httpx.MockTransport`` or replace
    ``transports`` outright.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IRecordStore,
        cache: ICacheBackend,
        http_client: httpx.Client | None = None,
        transports: Mapping[SenderProvider, IMailTransport] | None = None,
        tokens: AccessTokenService | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=settings.notify.http_timeout)
        self._transports: dict[SenderProvider, IMailTransport] = dict(transports or {
            SenderProvider.GMAIL: GmailTransport(self._client, settings.google.gmail_send_url),
            SenderProvider.MICROSOFT: MicrosoftGraphTransport(self._client, settings.microsoft.graph_send_url),
        })
        self._tokens = tokens or AccessTokenService(
            store=store,
            cache=cache,
            refreshers={
                SenderProvider.GMAIL: google_refresher(settings.google, self._client),
                SenderProvider.MICROSOFT: microsoft_refresher(settings.microsoft, self._client),
            },
            skew_seconds=settings.notify.token_refresh_skew_seconds,
        )

    def dispatch(self, account: SenderAccount, to: str, email: RenderedEmail) -> str | None:
        """Returns the provider message id when the provider reports one."""
        transport = self._transports.get(account.provider)
        if transport is None:
            raise EmailSendError(f"No mail transport for provider {account.provider}")
        access_token = self._tokens.get_access_token(account)
        message_id = transport.send(
            access_token=access_token,
            sender=account.user_email,
            to=to,
            subject=email.subject,
            text=email.text,
        )
        logger.debug("Sent %r via %s from %s", email.subject, account.provider, account.user_email)
        return message_id

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
