"""
ArcGIS credentials for the routing service.

The workflow only needs ``await provider.get_credential(service_url)``; how
the token is obtained is up to the provider:

- ``StaticCredentialProvider``  - an ArcGIS API key (never expires)
- ``OAuthAppCredentialProvider`` - app login (client credentials grant),
  cached until shortly before it expires

Example:
    provider = provider_from_settings(get_settings(), client)
    credential = await provider.get_credential(SERVICE_AREA_URL)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from drivetime_planner.errors import CredentialError

if TYPE_CHECKING:
    from drivetime_planner.config import Settings

logger = logging.getLogger(__name__)

TOKEN_PATH = "/sharing/rest/oauth2/token"

#: Refresh this long before the token actually expires.
DEFAULT_EXPIRY_SKEW = timedelta(seconds=60)


@dataclass(frozen=True)
class Credential:
    """A bearer token for the routing service."""

    token: str
    expires_at: datetime | None = None

    def is_expired(
        self, now: datetime | None = None, skew: timedelta = DEFAULT_EXPIRY_SKEW
    ) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        return now >= self.expires_at - skew


class CredentialProvider(Protocol):
    async def get_credential(self, service_url: str) -> Credential: ...


class StaticCredentialProvider:
    """Hands out a fixed API key."""

    def __init__(self, token: str) -> None:
        if not token:
            msg = "API key is empty"
            raise CredentialError(msg)
        self._credential = Credential(token=token)

    async def get_credential(self, service_url: str) -> Credential:
        return self._credential


class MissingCredentialProvider:
    """Placeholder used when nothing is configured; fails on first use."""

    async def get_credential(self, service_url: str) -> Credential:
        msg = (
            "No ArcGIS credentials configured "
            "(set DRIVETIME_API_KEY or DRIVETIME_CLIENT_ID/DRIVETIME_CLIENT_SECRET)"
        )
        raise CredentialError(msg)


class OAuthAppCredentialProvider:
    """Client-credentials login against an ArcGIS portal, cached until expiry."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        portal_url: str = "https://www.arcgis.com",
        expiry_skew: timedelta = DEFAULT_EXPIRY_SKEW,
    ) -> None:
        self.client = client
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = portal_url.rstrip("/") + TOKEN_PATH
        self.expiry_skew = expiry_skew
        self._cached: Credential | None = None

    async def get_credential(self, service_url: str) -> Credential:
        if self._cached is not None and not self._cached.is_expired(skew=self.expiry_skew):
            return self._cached
        self._cached = await self._request_token()
        return self._cached

    async def _request_token(self) -> Credential:
        logger.debug("Requesting app token from %s", self.token_url)
        try:
            resp = await self.client.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                    "f": "json",
                },
            )
            resp.raise_for_status()
            payload: Any = resp.json()
        except httpx.HTTPError as e:
            msg = f"Could not obtain ArcGIS token: {e}"
            raise CredentialError(msg) from e
        except ValueError as e:
            msg = "Could not obtain ArcGIS token: response is not JSON"
            raise CredentialError(msg) from e

        if not isinstance(payload, dict):
            msg = "Could not obtain ArcGIS token: unexpected response"
            raise CredentialError(msg)
        if "error" in payload:
            error = payload["error"] or {}
            detail = error.get("message") if isinstance(error, dict) else str(error)
            msg = f"Could not obtain ArcGIS token: {detail or 'unknown error'}"
            raise CredentialError(msg)

        token = payload.get("access_token")
        if not token:
            msg = "Could not obtain ArcGIS token: no access_token in response"
            raise CredentialError(msg)

        expires_in = payload.get("expires_in")
        expires_at = None
        if expires_in is not None:
            try:
                seconds = int(expires_in)
            except (TypeError, ValueError, OverflowError) as e:
                msg = f"Could not obtain ArcGIS token: invalid expires_in {expires_in!r}"
                raise CredentialError(msg) from e
            expires_at = datetime.now(UTC) + timedelta(seconds=seconds)
        return Credential(token=token, expires_at=expires_at)


def provider_from_settings(settings: Settings, client: httpx.AsyncClient) -> CredentialProvider:
    """Pick a provider: API key first, then app credentials."""
    if settings.api_key:
        return StaticCredentialProvider(settings.api_key)
    if settings.client_id and settings.client_secret:
        return OAuthAppCredentialProvider(
            client,
            settings.client_id,
            settings.client_secret,
            portal_url=settings.portal_url,
        )
    return MissingCredentialProvider()
