# Power BI Readiness MCP Server
# File: tests/test_client.py
# Version: v2

"""Endpoint client behaviour against httpx.MockTransport.

No real HTTP is performed: every request is answered by a handler that
records what it saw.
"""

from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from pbi_readiness_mcp.auth import OAuthClient
from pbi_readiness_mcp.client import (
    CAPACITIES_PATH,
    PowerBIAdminClient,
    dataset_detail_path,
    item_list_path,
)
from pbi_readiness_mcp.errors import NotFoundApiError, TransientApiError
from pbi_readiness_mcp.models import ItemKind


def _run(coro):
    """Helper to run async coroutines in plain pytest tests."""
    return asyncio.run(coro)


class _Recorder:
    def __init__(self, responses: List[httpx.Response]) -> None:
        self.responses = responses
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _client(config, handler, sleeps: List[float]) -> PowerBIAdminClient:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return PowerBIAdminClient(
        config=config,
        oauth=OAuthClient(config=config),
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
    )


def test_success_returns_parsed_body(config) -> None:
    recorder = _Recorder([httpx.Response(200, json={"value": [{"id": "c1"}]})])
    sleeps: List[float] = []
    client = _client(config, recorder, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert result.ok
    assert result.data == {"value": [{"id": "c1"}]}
    assert result.attempts == 1
    assert result.failures == []
    assert sleeps == []

    request = recorder.requests[0]
    assert str(request.url) == "https://api.test/v1.0/myorg/admin/capacities"
    assert request.headers["Authorization"] == "Bearer test-token"


def test_three_transient_failures_then_success(config) -> None:
    recorder = _Recorder(
        [
            httpx.Response(503, text="busy"),
            httpx.Response(500, text="oops"),
            httpx.Response(502, text="gateway"),
            httpx.Response(200, json={"value": []}),
        ]
    )
    sleeps: List[float] = []
    client = _client(config, recorder, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert result.ok
    assert result.attempts == 4
    assert len(result.failures) == 3
    assert "HTTP 503" in result.failures[0]
    assert sleeps == [1.0, 2.0, 4.0]


def test_transient_failures_exhaust_retries(config) -> None:
    recorder = _Recorder([httpx.Response(500, text="still broken")])
    sleeps: List[float] = []
    client = _client(config, recorder, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert not result.ok
    assert isinstance(result.error, TransientApiError)
    assert result.error.status_code == 500
    assert result.attempts == config.max_retries + 1
    assert len(recorder.requests) == 4
    assert sleeps == [1.0, 2.0, 4.0]


def test_404_is_not_found_and_not_retried(config) -> None:
    recorder = _Recorder(
        [
            httpx.Response(
                404,
                json={"error": {"code": "PowerBIEntityNotFound", "message": "gone"}},
            )
        ]
    )
    sleeps: List[float] = []
    client = _client(config, recorder, sleeps)

    result = _run(client.call(dataset_detail_path("ds-1")))

    assert isinstance(result.error, NotFoundApiError)
    assert result.error.code == "PowerBIEntityNotFound"
    assert result.attempts == 1
    assert len(recorder.requests) == 1
    assert sleeps == []


def test_entity_not_found_code_on_other_status_is_not_found(config) -> None:
    recorder = _Recorder(
        [httpx.Response(400, json={"error": {"code": "ItemNotFound"}})]
    )
    client = _client(config, recorder, [])

    result = _run(client.call(item_list_path("ws-1", ItemKind.DATASET)))

    assert isinstance(result.error, NotFoundApiError)
    assert result.attempts == 1


def test_throttling_honours_retry_after(config) -> None:
    recorder = _Recorder(
        [
            httpx.Response(429, headers={"Retry-After": "10"}, text="slow down"),
            httpx.Response(200, json={"value": []}),
        ]
    )
    sleeps: List[float] = []
    client = _client(config, recorder, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert result.ok
    assert result.attempts == 2
    assert sleeps == [10.0]


def test_transport_error_is_transient(config) -> None:
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    sleeps: List[float] = []
    client = _client(config, handler, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert isinstance(result.error, TransientApiError)
    assert "connection refused" in result.error.reason
    assert len(calls) == 4


def test_non_json_success_body_is_transient(config) -> None:
    recorder = _Recorder(
        [httpx.Response(200, text="<html>maintenance</html>"), httpx.Response(200, json={"ok": 1})]
    )
    client = _client(config, recorder, [])

    result = _run(client.call(CAPACITIES_PATH))

    assert result.ok
    assert result.attempts == 2
    assert "non-JSON" in result.failures[0]


def test_absolute_urls_pass_through(config) -> None:
    recorder = _Recorder([httpx.Response(200, json={"value": []})])
    client = _client(config, recorder, [])

    _run(client.call("https://api.test/v1.0/myorg/admin/groups?$skiptoken=abc"))

    assert str(recorder.requests[0].url).startswith("https://api.test/v1.0/myorg/admin/groups")


def test_missing_credentials_are_reported_not_raised(config) -> None:
    config.access_token = None
    config.max_retries = 0
    recorder = _Recorder([httpx.Response(200, json={})])
    client = _client(config, recorder, [])

    result = _run(client.call(CAPACITIES_PATH))

    assert isinstance(result.error, TransientApiError)
    assert "access token" in result.error.reason
    assert recorder.requests == []


def test_backoff_delay_is_capped(config) -> None:
    config.max_backoff_seconds = 3.0
    client = _client(config, _Recorder([httpx.Response(200, json={})]), [])

    assert client.backoff_delay(1) == 1.0
    assert client.backoff_delay(2) == 2.0
    assert client.backoff_delay(3) == 3.0
    assert client.backoff_delay(1, retry_after=120.0) == 3.0


@pytest.mark.asyncio
async def test_retry_state_is_per_call(config) -> None:
    """Concurrent calls each get their own retry budget."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/bad"):
            return httpx.Response(503)
        return httpx.Response(200, json={"value": []})

    sleeps: List[float] = []
    client = _client(config, handler, sleeps)

    good, bad = await asyncio.gather(client.call("good"), client.call("bad"))

    assert good.ok and good.attempts == 1
    assert not bad.ok and bad.attempts == 4
    assert sleeps == [1.0, 2.0, 4.0]


def _oauth_client(config, token_handler, api_handler, sleeps: List[float]) -> PowerBIAdminClient:
    """Client whose token POSTs and API GETs both go through MockTransport."""
    config.access_token = None
    config.tenant_id = "contoso"
    config.client_id = "app-id"
    config.client_secret = "app-secret"

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.microsoftonline.com":
            return token_handler(request)
        return api_handler(request)

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    transport = httpx.MockTransport(handler)
    return PowerBIAdminClient(
        config=config,
        oauth=OAuthClient(config=config, transport=transport),
        transport=transport,
        sleep=fake_sleep,
    )


def test_unreachable_token_endpoint_is_transient(config) -> None:
    api_requests: List[httpx.Request] = []

    def token_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("login host unreachable", request=request)

    def api_handler(request: httpx.Request) -> httpx.Response:
        api_requests.append(request)
        return httpx.Response(200, json={"value": []})

    sleeps: List[float] = []
    client = _oauth_client(config, token_handler, api_handler, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert not result.ok
    assert isinstance(result.error, TransientApiError)
    assert "login host unreachable" in result.error.reason
    assert result.attempts == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert api_requests == []


def test_non_json_token_response_is_transient(config) -> None:
    def token_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    def api_handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        return httpx.Response(200, json={"value": []})

    config.max_retries = 0
    client = _oauth_client(config, token_handler, api_handler, [])

    result = _run(client.call(CAPACITIES_PATH))

    assert isinstance(result.error, TransientApiError)
    assert "non-JSON" in result.error.reason


def test_unauthorized_response_refreshes_token(config) -> None:
    issued: List[str] = []

    def token_handler(request: httpx.Request) -> httpx.Response:
        issued.append(f"tok-{len(issued) + 1}")
        return httpx.Response(200, json={"access_token": issued[-1], "expires_in": 3599})

    def api_handler(request: httpx.Request) -> httpx.Response:
        if request.headers["Authorization"] == "Bearer tok-1":
            return httpx.Response(401, json={"error": {"code": "TokenExpired"}})
        return httpx.Response(200, json={"value": [{"id": "c1"}]})

    sleeps: List[float] = []
    client = _oauth_client(config, token_handler, api_handler, sleeps)

    result = _run(client.call(CAPACITIES_PATH))

    assert result.ok
    assert result.attempts == 2
    assert "HTTP 401" in result.failures[0]
    assert issued == ["tok-1", "tok-2"]
