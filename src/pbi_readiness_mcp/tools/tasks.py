# Power BI Readiness MCP Server
# File: tools/tasks.py
# Version: v6
#
# NOTE: This module is the single place where we define "business logic"
# that is exposed as MCP tools.  The MCP transports (stdio) simply call
# `register_tools(server)` to wire these up.

from __future__ import annotations

import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..auth import OAuthClient
from ..client import (
    CAPACITIES_PATH,
    WORKSPACES_PATH,
    ApiResult,
    PowerBIAdminClient,
    dataset_detail_path,
    item_list_path,
)
from ..config import ReadinessConfig
from ..discovery import discover_capacities, discover_workspaces, run_assessment
from ..errors import FatalDiscoveryError, NotFoundApiError
from ..models import ItemKind
from ..report import assessment_to_dict, capacity_to_dict, workspace_to_dict


# ---------------------------------------------------------------------------
# Internal helpers (env flags, mock client)
# ---------------------------------------------------------------------------


def _env_flag(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _make_error(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Small, LLM-friendly error shape used by tools and diagnostics."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return err


def _cap_int(value: int, cap: int, min_value: int = 1) -> tuple[int, bool]:
    """Clamp an integer to [min_value, cap]. Returns (effective, cap_applied)."""
    try:
        v = int(value)
    except (TypeError, ValueError):
        v = min_value

    if v < min_value:
        return min_value, True

    if cap > 0 and v > cap:
        return cap, True

    return v, False


MAX_WORKSPACES_LISTED = 1000


class MockPowerBIAdminClient:
    """Small in-memory stand-in for PowerBIAdminClient.

    Activated when PBI_MOCK_MODE is truthy. Answers ``call(path, params)``
    for a fixed demo tenant that trips most readiness rules, including one
    inaccessible workspace and one semantic model whose detail is missing.
    """

    def __init__(self, config: Optional[ReadinessConfig] = None) -> None:
        self._config = config

        capacities = [
            {
                "id": "cap-em3",
                "displayName": "Embedded Sales",
                "sku": "EM3",
                "state": "Active",
                "region": "West Europe",
                "admins": ["bi-admins@contoso.com"],
            },
            {
                "id": "cap-p1",
                "displayName": "Premium Core",
                "sku": "P1",
                "state": "Active",
                "region": "West Europe",
                "admins": ["bi-admins@contoso.com"],
            },
            {
                "id": "cap-a2",
                "displayName": "Azure Analytics",
                "sku": "A2",
                "state": "Active",
                "region": "North Europe",
                "admins": [],
            },
        ]

        workspaces = [
            {
                "id": "ws-sales",
                "name": "Sales Analytics",
                "state": "Active",
                "type": "Workspace",
                "capacityId": "cap-em3",
                "isReadOnly": False,
                "isOnDedicatedCapacity": True,
            },
            {
                "id": "ws-finance",
                "name": "Finance",
                "state": "Active",
                "type": "Workspace",
                "capacityId": "cap-p1",
                "isReadOnly": False,
                "isOnDedicatedCapacity": True,
            },
            {
                "id": "ws-archive",
                "name": "Archive 2019",
                "state": "Deleted",
                "type": "Workspace",
                "isReadOnly": False,
                "isOnDedicatedCapacity": False,
            },
            {
                "id": "ws-locked",
                "name": "Restricted HR",
                "state": "Active",
                "type": "Workspace",
                "capacityId": "cap-a2",
                "isReadOnly": True,
                "isOnDedicatedCapacity": True,
            },
        ]

        items: Dict[tuple[str, ItemKind], List[Dict[str, Any]]] = {
            ("ws-sales", ItemKind.DATASET): [
                {"id": "ds-orders", "name": "Orders", "isRefreshable": True},
                {"id": "ds-targets", "name": "Targets", "isRefreshable": False},
            ],
            ("ws-sales", ItemKind.REPORT): [
                {"id": "rpt-orders", "name": "Orders Overview", "reportType": "PowerBIReport", "datasetId": "ds-orders"},
                {"id": "rpt-invoices", "name": "Invoices", "reportType": "PaginatedReport"},
            ],
            ("ws-sales", ItemKind.DASHBOARD): [
                {"id": "dash-sales", "displayName": "Sales KPIs"},
            ],
            ("ws-finance", ItemKind.DATASET): [
                {"id": "ds-ledger", "name": "General Ledger", "isRefreshable": True},
            ],
            ("ws-finance", ItemKind.DATAFLOW): [
                {"objectId": "df-fx", "name": "FX Rates"},
            ],
        }

        self._pages: Dict[str, Dict[str, Any]] = {
            CAPACITIES_PATH: {"value": capacities},
            WORKSPACES_PATH: {"value": workspaces},
        }
        for ws in workspaces:
            if ws["id"] == "ws-locked":
                continue
            for kind in ItemKind:
                self._pages[item_list_path(ws["id"], kind)] = {"value": items.get((ws["id"], kind), [])}

        self._details: Dict[str, Dict[str, Any]] = {
            dataset_detail_path("ds-orders"): {
                "id": "ds-orders",
                "name": "Orders",
                "configuredBy": "etl@contoso.com",
                "isRefreshable": True,
                "targetStorageMode": "PremiumFiles",
                "isEffectiveIdentityRequired": True,
                "isEffectiveIdentityRolesRequired": True,
                "isOnPremGatewayRequired": False,
                "createdDate": "2021-03-04T10:15:00.0000000Z",
            },
            dataset_detail_path("ds-ledger"): {
                "id": "ds-ledger",
                "name": "General Ledger",
                "configuredBy": "finance@contoso.com",
                "isRefreshable": True,
                "targetStorageMode": "Abf",
                "isEffectiveIdentityRequired": False,
                "isEffectiveIdentityRolesRequired": False,
                "isOnPremGatewayRequired": True,
                "createdDate": "2019-11-20T08:00:00Z",
            },
        }

    async def ping(self) -> bool:
        return True

    async def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        body = self._pages.get(path) or self._details.get(path)
        if body is None:
            reason = f"HTTP 404 from 'mock://{path}' (PowerBIEntityNotFound)"
            return ApiResult(
                error=NotFoundApiError(reason, status_code=404, code="PowerBIEntityNotFound"),
                attempts=1,
                failures=[reason],
            )

        # The mock never pages: every listing fits in the first $skip window.
        if params and params.get("$skip"):
            return ApiResult(data={"value": []}, attempts=1)
        return ApiResult(data=body, attempts=1)


def _make_client(cfg: Optional[ReadinessConfig] = None) -> PowerBIAdminClient:
    """Create a PowerBIAdminClient from environment variables.

    If PBI_MOCK_MODE is truthy, a lightweight in-process mock client is
    returned instead of a real HTTP client.

    Note: Callers should prefer invoking this with *no arguments* to keep
    unit tests monkeypatch-friendly (tests often replace _make_client with
    a no-arg lambda).
    """
    cfg = cfg or ReadinessConfig.from_env()

    if cfg.mock_mode or _env_flag("PBI_MOCK_MODE", False):
        return MockPowerBIAdminClient(config=cfg)  # type: ignore[return-value]

    oauth = OAuthClient(config=cfg)
    return PowerBIAdminClient(config=cfg, oauth=oauth)


# ---------------------------------------------------------------------------
# Core async tasks (library-style)
# ---------------------------------------------------------------------------


async def ping() -> Dict[str, Any]:
    client = _make_client()
    ok = await client.ping()
    return {"ok": bool(ok)}


async def list_capacities() -> Dict[str, Any]:
    cfg = ReadinessConfig.from_env()
    client = _make_client()

    try:
        capacities, result = await discover_capacities(client, cfg)
    except FatalDiscoveryError as exc:
        return {"ok": False, "error": _make_error("CAPACITY_LIST_FAILED", str(exc))}

    return {
        "ok": True,
        "capacities": [capacity_to_dict(c) for c in capacities],
        "meta": {
            "count": sum(1 for c in capacities if not c.is_shared),
            "status": result.status.value,
            "pages": result.pages,
        },
    }


async def list_workspaces(limit: int = 100) -> Dict[str, Any]:
    cfg = ReadinessConfig.from_env()
    requested_limit = limit
    effective_limit, cap_applied = _cap_int(limit, MAX_WORKSPACES_LISTED, min_value=1)

    client = _make_client()
    try:
        workspaces, result = await discover_workspaces(client, cfg)
    except FatalDiscoveryError as exc:
        return {"ok": False, "error": _make_error("WORKSPACE_LIST_FAILED", str(exc))}

    return {
        "ok": True,
        "workspaces": [workspace_to_dict(w) for w in workspaces[:effective_limit]],
        "meta": {
            "total": len(workspaces),
            "truncated": len(workspaces) > effective_limit,
            "requested_limit": requested_limit,
            "effective_limit": effective_limit,
            "cap_applied": cap_applied,
            "status": result.status.value,
        },
    }


async def run_readiness_assessment(include_inventory: bool = False) -> Dict[str, Any]:
    """Full discovery plus classification."""
    cfg = ReadinessConfig.from_env()
    client = _make_client()

    started = time.time()
    try:
        assessment = await run_assessment(client, cfg)
    except FatalDiscoveryError as exc:
        return {
            "ok": False,
            "error": _make_error(
                "DISCOVERY_FAILED",
                str(exc),
                {"resource": exc.resource, "status_code": exc.cause.status_code},
            ),
        }

    out = assessment_to_dict(assessment, include_inventory=bool(include_inventory))
    summary = assessment.findings.summary
    out["ok"] = True
    out["summary"] = (
        f"{summary.blockers} blocker(s), {summary.warnings} warning(s), "
        f"{summary.infos} informational finding(s) across "
        f"{summary.total_workspaces} workspace(s)."
    )
    out["meta"] = {
        "elapsed_ms": int((time.time() - started) * 1000),
        "mock_mode": bool(cfg.mock_mode or _env_flag("PBI_MOCK_MODE", False)),
    }
    return out


# ---------------------------------------------------------------------------
# Diagnostics & identity helpers
# ---------------------------------------------------------------------------


def _collect_tenant_info() -> Dict[str, Any]:
    """Redacted snapshot of API / OAuth configuration from env."""
    cfg = ReadinessConfig.from_env()

    host = None
    try:
        host = urlparse(cfg.api_base_url).hostname or cfg.api_base_url
    except ValueError:
        host = cfg.api_base_url

    return {
        "api_base_url": cfg.api_base_url,
        "host": host,
        "tenant_id": cfg.tenant_id,
        "mock_mode": bool(cfg.mock_mode),
        "verify_tls": bool(cfg.verify_tls),
        "oauth": {
            "token_url_configured": bool(cfg.token_url),
            "client_id_configured": bool(cfg.client_id),
            "client_secret_configured": bool(cfg.client_secret),
            "access_token_provided": bool(cfg.access_token),
            "scope": cfg.oauth_scope,
        },
        "retry": {
            "max_retries": cfg.max_retries,
            "backoff_base_seconds": cfg.backoff_base_seconds,
            "max_backoff_seconds": cfg.max_backoff_seconds,
        },
        "limits": {
            "workspace_page_size": cfg.workspace_page_size,
            "max_pages": cfg.max_pages,
            "max_workers": cfg.max_workers,
        },
    }


async def get_tenant_info() -> Dict[str, Any]:
    return _collect_tenant_info()


async def diagnostics() -> Dict[str, Any]:
    started = time.time()
    config_info = _collect_tenant_info()

    checks: List[Dict[str, Any]] = []
    overall_ok = True

    # Client init
    t0 = time.time()
    try:
        client = _make_client()
        checks.append(
            {"name": "client_init", "ok": True, "error": None, "elapsed_ms": int((time.time() - t0) * 1000)}
        )
    except Exception as exc:  # pragma: no cover
        checks.append(
            {
                "name": "client_init",
                "ok": False,
                "error": _make_error("CONFIG_ERROR", str(exc)),
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )
        return {
            "ok": False,
            "mock_mode": config_info["mock_mode"],
            "config": config_info,
            "checks": checks,
            "meta": {"elapsed_ms": int((time.time() - started) * 1000)},
        }

    # Ping
    t0 = time.time()
    ok_ping = await client.ping()
    if not ok_ping:
        overall_ok = False
    checks.append(
        {
            "name": "ping",
            "ok": bool(ok_ping),
            "error": None if ok_ping else _make_error("CONFIG_ERROR", "No admin API base URL configured."),
            "elapsed_ms": int((time.time() - t0) * 1000),
        }
    )

    # List capacities (single call, retries included)
    t0 = time.time()
    result = await client.call(CAPACITIES_PATH)
    if result.error is None:
        value = result.data.get("value") if isinstance(result.data, dict) else None
        checks.append(
            {
                "name": "list_capacities",
                "ok": True,
                "count": len(value) if isinstance(value, list) else 0,
                "attempts": result.attempts,
                "error": None,
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )
    else:
        overall_ok = False
        checks.append(
            {
                "name": "list_capacities",
                "ok": False,
                "attempts": result.attempts,
                "error": _make_error(
                    "BACKEND_ERROR",
                    result.error.reason,
                    {"status_code": result.error.status_code, "code": result.error.code},
                ),
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )

    return {
        "ok": overall_ok,
        "mock_mode": config_info["mock_mode"],
        "config": config_info,
        "checks": checks,
        "meta": {"elapsed_ms": int((time.time() - started) * 1000)},
    }


# ---------------------------------------------------------------------------
# MCP tool registration
# ---------------------------------------------------------------------------


def register_tools(server: Any) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(name="pbi_ping", description="Basic health check for the Power BI Readiness MCP server.")
    async def mcp_ping() -> Dict[str, Any]:
        return await ping()

    @server.tool(name="pbi_list_capacities", description="List Power BI capacities with SKU, region and admins.")
    async def mcp_list_capacities() -> Dict[str, Any]:
        return await list_capacities()

    @server.tool(name="pbi_list_workspaces", description="List workspaces visible to the admin API.")
    async def mcp_list_workspaces(limit: int = 100) -> Dict[str, Any]:
        return await list_workspaces(limit=limit)

    @server.tool(
        name="pbi_run_readiness_assessment",
        description=(
            "Walk every workspace, resolve semantic model detail and report Fabric "
            "migration blockers, warnings and informational findings."
        ),
    )
    async def mcp_run_readiness_assessment(include_inventory: bool = False) -> Dict[str, Any]:
        return await run_readiness_assessment(include_inventory=include_inventory)

    @server.tool(
        name="pbi_diagnostics",
        description="Run high-level health checks against the MCP server and the admin API.",
    )
    async def mcp_diagnostics() -> Dict[str, Any]:
        return await diagnostics()

    @server.tool(
        name="pbi_get_tenant_info",
        description="Return high-level, redacted tenant configuration info (no secrets).",
    )
    async def mcp_get_tenant_info() -> Dict[str, Any]:
        return await get_tenant_info()
