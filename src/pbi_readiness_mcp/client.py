# Power BI Readiness MCP Server
# File: client.py
# Version: v6
"""Endpoint client for the Power BI admin REST API.

One ``call()`` is one logical request: it authenticates, issues the GET,
retries transient failures with exponential backoff and returns an
``ApiResult`` carrying either the parsed JSON body or a classified error.
Nothing is raised for API failures; the caller decides what a failure means.

Resources used by the readiness engine:

- ``admin/capacities``
- ``admin/groups`` (workspaces, paged with $top/$skip)
- ``admin/groups/<id>/{datasets,reports,dashboards,dataflows}``
- ``datasets/<id>`` for semantic model detail
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
from httpx import RequestError

from .auth import OAuthClient
from .config import ReadinessConfig
from .errors import AdminApiError, NotFoundApiError, TransientApiError
from .models import ItemKind

logger = logging.getLogger(__name__)


CAPACITIES_PATH = "admin/capacities"
WORKSPACES_PATH = "admin/groups"

_ITEM_SEGMENTS: Dict[ItemKind, str] = {
    ItemKind.DATASET: "datasets",
    ItemKind.REPORT: "reports",
    ItemKind.DASHBOARD: "dashboards",
    ItemKind.DATAFLOW: "dataflows",
}


def item_list_path(workspace_id: str, kind: ItemKind) -> str:
    """Admin listing of one item kind inside a workspace."""
    return f"{WORKSPACES_PATH}/{quote(workspace_id, safe='')}/{_ITEM_SEGMENTS[kind]}"


def dataset_detail_path(dataset_id: str) -> str:
    return f"datasets/{quote(dataset_id, safe='')}"


@dataclass
class ApiResult:
    """Outcome of one logical call.

    ``attempts`` counts HTTP attempts made; ``failures`` holds the reason of
    every failed attempt, so a call that succeeded after retries still shows
    what went wrong on the way.
    """

    data: Any = None
    error: Optional[AdminApiError] = None
    attempts: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def _error_code(response: httpx.Response) -> Optional[str]:
    """Extract ``error.code`` from an admin API error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    err = body.get("error")
    if isinstance(err, dict):
        code = err.get("code")
        if code:
            return str(code)
    code = body.get("code") or body.get("errorCode")
    return str(code) if code else None


def classify_failure(url: str, response: httpx.Response) -> AdminApiError:
    """Map a non-2xx response onto the error taxonomy.

    404, or any domain code ending in ``NotFound`` (``PowerBIEntityNotFound``,
    ``ItemNotFound``, ...), is permanent. Everything else is transient.
    """
    status = response.status_code
    code = _error_code(response)
    body_preview = response.text[:500]
    reason = (
        f"HTTP {status} from '{url}'"
        + (f" ({code})" if code else "")
        + (f". Response snippet: {body_preview}" if body_preview else "")
    )

    if status == 404 or (code is not None and code.lower().endswith("notfound")):
        return NotFoundApiError(reason, status_code=status, code=code)
    return TransientApiError(reason, status_code=status, code=code)


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw.strip()), 0.0)
    except ValueError:
        return None


@dataclass
class PowerBIAdminClient:
    """Wrapper around the Power BI admin API with retry and classification."""

    config: ReadinessConfig
    oauth: OAuthClient

    # Injectable for tests: httpx.MockTransport and a fake sleep.
    transport: Optional[httpx.AsyncBaseTransport] = None
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None

    # ------------------------------------------------------------------
    # Basic health
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """Lightweight health check: an API base URL is configured."""
        return bool(self.config.api_base_url)

    # ------------------------------------------------------------------
    # Single logical call
    # ------------------------------------------------------------------

    def url_for(self, path: str) -> str:
        """Resolve *path* against the API base URL. Absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        base_url = self.config.api_base_url.rstrip("/")
        return f"{base_url}/{path.lstrip('/')}"

    def backoff_delay(self, failed_attempts: int, retry_after: Optional[float] = None) -> float:
        """Delay before the next attempt: base * 2**(n-1), or Retry-After if longer."""
        delay = self.config.backoff_base_seconds * (2 ** (failed_attempts - 1))
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.config.max_backoff_seconds)

    async def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        """Issue one logical GET, retrying transient failures."""
        url = self.url_for(path)
        sleep = self.sleep or asyncio.sleep
        max_attempts = self.config.max_retries + 1

        failures: List[str] = []
        attempts = 0

        async with httpx.AsyncClient(
            timeout=self.config.http_timeout_seconds,
            verify=self.config.verify_tls,
            transport=self.transport,
        ) as http_client:
            while True:
                attempts += 1
                data, error, retry_after = await self._attempt(http_client, url, params)
                if error is None:
                    return ApiResult(data=data, attempts=attempts, failures=failures)

                failures.append(error.reason)
                if not error.retryable:
                    return ApiResult(error=error, attempts=attempts, failures=failures)

                if attempts >= max_attempts:
                    logger.warning(
                        "Giving up on '%s' after %d attempts: %s", url, attempts, error.reason
                    )
                    return ApiResult(error=error, attempts=attempts, failures=failures)

                delay = self.backoff_delay(attempts, retry_after)
                logger.debug(
                    "Transient failure on '%s' (attempt %d/%d), retrying in %.1fs: %s",
                    url,
                    attempts,
                    max_attempts,
                    delay,
                    error.reason,
                )
                await sleep(delay)

    async def _attempt(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        params: Optional[Dict[str, Any]],
    ) -> Tuple[Any, Optional[AdminApiError], Optional[float]]:
        """One HTTP attempt. Returns (data, error, retry_after)."""
        try:
            token = await self.oauth.get_access_token()
        except RuntimeError as exc:
            return None, TransientApiError(f"Could not obtain access token: {exc}"), None

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        try:
            response = await http_client.get(url, headers=headers, params=params or None)
        except RequestError as exc:
            return None, TransientApiError(f"Error calling admin API at '{url}': {exc}"), None

        if not response.is_success:
            if response.status_code == 401:
                # Expired or revoked token; the retry fetches a new one.
                self.oauth.invalidate()
            return None, classify_failure(url, response), _retry_after_seconds(response)

        try:
            return response.json(), None, None
        except ValueError:
            return (
                None,
                TransientApiError(
                    f"Unexpected non-JSON response from '{url}' (HTTP {response.status_code})."
                ),
                None,
            )


__all__ = [
    "ApiResult",
    "CAPACITIES_PATH",
    "PowerBIAdminClient",
    "WORKSPACES_PATH",
    "classify_failure",
    "dataset_detail_path",
    "item_list_path",
]
