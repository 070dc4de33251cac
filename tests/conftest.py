# Power BI Readiness MCP Server
# File: tests/conftest.py
# Version: v1

"""Shared fakes for tests.

``ScriptedClient`` answers ``call(path, params)`` from a routing table so the
collector, enumerator, resolver and orchestrator can be exercised without
HTTP. Route values may be:

- a dict / list: returned as the JSON body
- an ``AdminApiError``: returned as the failure
- a callable ``(params) -> value``: evaluated per call
- a ``Sequence`` wrapper: one value per successive call
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from pbi_readiness_mcp.client import ApiResult
from pbi_readiness_mcp.config import ReadinessConfig
from pbi_readiness_mcp.errors import AdminApiError, NotFoundApiError


class Sequence:
    """Route value that yields a different response on each call."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)

    def next(self) -> Any:
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def not_found(path: str = "") -> NotFoundApiError:
    return NotFoundApiError(
        f"HTTP 404 from '{path}' (PowerBIEntityNotFound)",
        status_code=404,
        code="PowerBIEntityNotFound",
    )


class ScriptedClient:
    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def ping(self) -> bool:
        return True

    def paths(self) -> List[str]:
        return [path for path, _ in self.calls]

    async def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        self.calls.append((path, dict(params or {})))

        if path not in self.routes:
            error = not_found(path)
            return ApiResult(error=error, attempts=1, failures=[error.reason])

        value = self.routes[path]
        if isinstance(value, Sequence):
            value = value.next()
        if callable(value):
            value = value(params or {})
        if isinstance(value, AdminApiError):
            return ApiResult(error=value, attempts=1, failures=[value.reason])
        return ApiResult(data=value, attempts=1)


@pytest.fixture
def scripted():
    """Factory fixture: ``scripted({path: response})``."""
    return ScriptedClient


@pytest.fixture
def config() -> ReadinessConfig:
    return ReadinessConfig(
        tenant_id=None,
        client_id=None,
        client_secret=None,
        mock_mode=False,
        api_base_url="https://api.test/v1.0/myorg",
        access_token="test-token",
        backoff_base_seconds=1.0,
    )
