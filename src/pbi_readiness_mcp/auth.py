# Power BI Readiness MCP Server
# File: auth.py
# Version: v4

"""OAuth2 client for obtaining access tokens for the Power BI admin API."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from .config import ReadinessConfig


# Refetch this long before the advertised expiry.
EXPIRY_SKEW_SECONDS = 60.0


@dataclass
class OAuthClient:
    """Simple OAuth2 client using the Azure AD client-credentials flow.

    The service principal needs the tenant setting that allows service
    principals to use read-only admin APIs. A token placed in
    ``PBI_ACCESS_TOKEN`` is used as-is and skips the token endpoint.

    Every failure to obtain a token is raised as ``RuntimeError``.
    """

    config: ReadinessConfig
    transport: Optional[httpx.AsyncBaseTransport] = None
    clock: Callable[[], float] = time.monotonic

    _cached_token: Optional[str] = None
    _expires_at: Optional[float] = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def _cached(self) -> Optional[str]:
        if not self._cached_token:
            return None
        if self._expires_at is not None and self.clock() >= self._expires_at:
            return None
        return self._cached_token

    def invalidate(self) -> None:
        """Forget the cached token; the next call fetches a fresh one."""
        self._cached_token = None
        self._expires_at = None

    async def get_access_token(self) -> str:
        """Return a valid access token.

        The token is cached in-memory until shortly before ``expires_in``
        runs out, or until ``invalidate()`` is called. Concurrent callers
        share one request to the token endpoint.
        """
        if self.config.access_token:
            return self.config.access_token

        token = self._cached()
        if token:
            return token

        async with self._lock:
            token = self._cached()
            if token:
                return token
            return await self._fetch_token()

    async def _fetch_token(self) -> str:
        token_url = self.config.token_url
        if not token_url or not self.config.client_id or not self.config.client_secret:
            raise RuntimeError(
                "OAuth configuration is incomplete. "
                "Set PBI_TENANT_ID (or PBI_OAUTH_TOKEN_URL), PBI_CLIENT_ID "
                "and PBI_CLIENT_SECRET, or provide PBI_ACCESS_TOKEN."
            )

        try:
            async with httpx.AsyncClient(
                timeout=30.0,
                verify=self.config.verify_tls,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "scope": self.config.oauth_scope,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.RequestError as exc:
            raise RuntimeError(f"Error calling token endpoint '{token_url}': {exc}") from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            # Wrap with a clearer message for humans and agents
            status = exc.response.status_code
            body_preview = exc.response.text[:500]
            raise RuntimeError(
                f"Failed to obtain access token from '{token_url}' "
                f"(HTTP {status}). Check PBI_TENANT_ID, PBI_CLIENT_ID "
                "and PBI_CLIENT_SECRET. "
                f"Response snippet: {body_preview}"
            ) from exc

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise RuntimeError(
                f"Token endpoint '{token_url}' returned a non-JSON response "
                f"(HTTP {response.status_code})."
            ) from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise RuntimeError("OAuth token response did not contain 'access_token'")

        expires_at = None
        try:
            expires_in = float(data.get("expires_in"))
        except (TypeError, ValueError):
            expires_in = None
        if expires_in is not None:
            expires_at = self.clock() + max(expires_in - EXPIRY_SKEW_SECONDS, 0.0)

        self._cached_token = token
        self._expires_at = expires_at
        return token
