"""OAuth refresh-token exchange for connected sender mailboxes.

Access tokens are reused until they are within the refresh skew of expiry.
Refreshed tokens (and rotated refresh tokens) are written back to the
sender account and cached in Redis until the skewed expiry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

import httpx
from pydantic import BaseModel

from enrollproof.core.config import GoogleOAuthConfig, MicrosoftOAuthConfig
from enrollproof.core.exceptions import CacheError, SenderNotConnected, TokenRefreshError
from enrollproof.core.protocols import ICacheBackend, IRecordStore
from enrollproof.core.timeutil import parse_iso, to_iso, utc_now
from enrollproof.models.notification import SenderAccount, SenderProvider
from enrollproof.persistence.tables import SENDER_ACCOUNTS

logger = logging.getLogger(__name__)


class RefreshedToken(BaseModel):
    access_token: str
    expires_in: int = 0
    refresh_token: Optional[str] = None  # present only when the provider rotates it
    scope: Optional[str] = None
    token_type: str = "Bearer"


def is_expired_soon(expires_at: datetime | str | None, skew_seconds: int = 60, now: datetime | None = None) -> bool:
    """Missing or unparseable expiry counts as expired."""
    expiry = parse_iso(expires_at)
    if expiry is None:
        return True
    now = now or utc_now()
    return now > expiry - timedelta(seconds=skew_seconds)


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class TokenRefresher:
    """``grant_type=refresh_token`` against one provider's token endpoint."""

    def __init__(
        self,
        *,
        provider: SenderProvider,
        token_url: str,
        client_id: str,
        client_secret: str,
        client: httpx.Client,
        scope: str | None = None,
    ) -> None:
        self.provider = provider
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._client = client
        self._scope = scope

    def refresh(self, refresh_token: str) -> RefreshedToken:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        if self._scope:
            data["scope"] = self._scope

        try:
            resp = self._client.post(self._token_url, data=data)
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"{self.provider} token refresh failed: {exc}") from exc

        body = _json_body(resp)
        if resp.is_error or not body.get("access_token"):
            detail = body.get("error_description") or body.get("error") or f"HTTP {resp.status_code}"
            raise TokenRefreshError(f"Failed to refresh {self.provider} access token: {detail}")

        return RefreshedToken(
            access_token=str(body["access_token"]),
            expires_in=int(body.get("expires_in") or 0),
            refresh_token=str(body["refresh_token"]) if body.get("refresh_token") else None,
            scope=str(body["scope"]) if body.get("scope") else None,
            token_type=str(body.get("token_type") or "Bearer"),
        )


def google_refresher(config: GoogleOAuthConfig, client: httpx.Client) -> TokenRefresher:
    return TokenRefresher(
        provider=SenderProvider.GMAIL,
        token_url=config.token_url,
        client_id=config.client_id,
        client_secret=config.client_secret,
        client=client,
    )


def microsoft_refresher(config: MicrosoftOAuthConfig, client: httpx.Client) -> TokenRefresher:
    return TokenRefresher(
        provider=SenderProvider.MICROSOFT,
        token_url=config.token_url,
        client_id=config.client_id,
        client_secret=config.client_secret,
        client=client,
        scope=config.scope,
    )


class AccessTokenService:
    """Hands out a usable bearer token for a sender account."""

    def __init__(
        self,
        *,
        store: IRecordStore,
        cache: ICacheBackend,
        refreshers: Mapping[SenderProvider, TokenRefresher],
        skew_seconds: int = 60,
    ) -> None:
        self._store = store
        self._cache = cache
        self._refreshers = dict(refreshers)
        self._skew = skew_seconds

    @staticmethod
    def cache_key(account: SenderAccount) -> str:
        return f"sender-token:{account.provider}:{account.user_email.lower()}"

    def get_access_token(self, account: SenderAccount) -> str:
        key = self.cache_key(account)
        cached = self._cache_get(key)
        if cached:
            return cached

        if account.access_token and not is_expired_soon(account.expires_at, self._skew):
            return account.access_token

        if not account.refresh_token:
            raise SenderNotConnected(f"Sender {account.user_email} is missing a refresh token. Reconnect it.")
        refresher = self._refreshers.get(account.provider)
        if refresher is None:
            raise TokenRefreshError(f"No token refresher configured for {account.provider}")

        refreshed = refresher.refresh(account.refresh_token)
        expires_at = utc_now() + timedelta(seconds=max(0, refreshed.expires_in))
        self._store.update(
            SENDER_ACCOUNTS,
            {"provider": account.provider.value, "user_email": account.user_email},
            {
                "access_token": refreshed.access_token,
                "refresh_token": refreshed.refresh_token or account.refresh_token,
                "expires_at": to_iso(expires_at),
                "scope": refreshed.scope or account.scope,
            },
        )
        logger.info("Refreshed %s access token for %s", account.provider, account.user_email)

        self._cache_set(key, refreshed.expires_in - self._skew, refreshed.access_token)
        return refreshed.access_token

    # Redis is an accelerator here; a cache outage falls through to the store.

    def _cache_get(self, key: str) -> str | None:
        try:
            return self._cache.get(key)
        except CacheError as exc:
            logger.warning("Token cache read failed: %s", exc)
            return None

    def _cache_set(self, key: str, ttl: int, value: str) -> None:
        if ttl <= 0:
            return
        try:
            self._cache.setex(key, ttl, value)
        except CacheError as exc:
            logger.warning("Token cache write failed: %s", exc)
