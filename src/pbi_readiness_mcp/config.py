# Power BI Readiness MCP Server
# File: config.py
# Version: v3

"""Configuration loading for the Power BI Readiness MCP Server."""

from __future__ import annotations

from dataclasses import dataclass
import os


DEFAULT_API_BASE_URL = "https://api.powerbi.com/v1.0/myorg"
DEFAULT_OAUTH_SCOPE = "https://analysis.windows.net/powerbi/api/.default"


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_float_env(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Float counterpart of _parse_int_env."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = float(default)
    else:
        try:
            value = float(str(raw).strip())
        except ValueError:
            value = float(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


@dataclass
class ReadinessConfig:
    """Configuration values required to walk a Power BI tenant.

    Retry and paging knobs default to the values the admin API is known to
    tolerate: three retries with 1s/2s/4s backoff, and workspace pages of
    5000 (the maximum ``$top`` the admin groups endpoint accepts).
    """

    tenant_id: str | None
    client_id: str | None
    client_secret: str | None
    mock_mode: bool

    api_base_url: str = DEFAULT_API_BASE_URL
    oauth_token_url: str | None = None
    oauth_scope: str = DEFAULT_OAUTH_SCOPE
    access_token: str | None = None

    verify_tls: bool = True
    http_timeout_seconds: float = 60.0

    # Endpoint client retry policy
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    max_backoff_seconds: float = 60.0

    # Collection limits
    workspace_page_size: int = 5000
    max_pages: int = 1000

    # 1 keeps enumeration strictly sequential
    max_workers: int = 1

    @property
    def token_url(self) -> str | None:
        """Explicit token URL, or the Azure AD v2 endpoint for tenant_id."""
        if self.oauth_token_url:
            return self.oauth_token_url
        if self.tenant_id:
            return f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"
        return None

    @classmethod
    def from_env(cls) -> "ReadinessConfig":
        """Create configuration from environment variables."""
        tenant_id = os.getenv("PBI_TENANT_ID")
        client_id = os.getenv("PBI_CLIENT_ID")
        client_secret = os.getenv("PBI_CLIENT_SECRET")

        api_base_url = os.getenv("PBI_API_BASE_URL") or DEFAULT_API_BASE_URL
        oauth_token_url = os.getenv("PBI_OAUTH_TOKEN_URL") or None
        oauth_scope = os.getenv("PBI_OAUTH_SCOPE") or DEFAULT_OAUTH_SCOPE
        access_token = os.getenv("PBI_ACCESS_TOKEN") or None

        mock_mode = _parse_bool_env("PBI_MOCK_MODE", default=False)
        verify_tls = _parse_bool_env("PBI_VERIFY_TLS", default=True)
        http_timeout_seconds = _parse_float_env(
            "PBI_HTTP_TIMEOUT_SECONDS", default=60.0, min_value=1.0, max_value=600.0
        )

        max_retries = _parse_int_env("PBI_MAX_RETRIES", default=3, min_value=0, max_value=10)
        backoff_base_seconds = _parse_float_env(
            "PBI_BACKOFF_BASE_SECONDS", default=1.0, min_value=0.0, max_value=60.0
        )
        max_backoff_seconds = _parse_float_env(
            "PBI_MAX_BACKOFF_SECONDS", default=60.0, min_value=0.0, max_value=3600.0
        )

        workspace_page_size = _parse_int_env(
            "PBI_WORKSPACE_PAGE_SIZE", default=5000, min_value=1, max_value=5000
        )
        max_pages = _parse_int_env("PBI_MAX_PAGES", default=1000, min_value=1, max_value=100000)
        max_workers = _parse_int_env("PBI_MAX_WORKERS", default=1, min_value=1, max_value=32)

        return cls(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
            mock_mode=mock_mode,
            api_base_url=api_base_url,
            oauth_token_url=oauth_token_url,
            oauth_scope=oauth_scope,
            access_token=access_token,
            verify_tls=verify_tls,
            http_timeout_seconds=http_timeout_seconds,
            max_retries=max_retries,
            backoff_base_seconds=backoff_base_seconds,
            max_backoff_seconds=max_backoff_seconds,
            workspace_page_size=workspace_page_size,
            max_pages=max_pages,
            max_workers=max_workers,
        )
