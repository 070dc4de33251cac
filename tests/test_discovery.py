# Power BI Readiness MCP Server
# File: tests/test_discovery.py
# Version: v2

from __future__ import annotations

import httpx
import pytest

from pbi_readiness_mcp.auth import OAuthClient
from pbi_readiness_mcp.client import (
    CAPACITIES_PATH,
    WORKSPACES_PATH,
    PowerBIAdminClient,
    dataset_detail_path,
    item_list_path,
)
from pbi_readiness_mcp.discovery import run_assessment, run_discovery
from pbi_readiness_mcp.errors import FatalDiscoveryError, TransientApiError
from pbi_readiness_mcp.models import ItemKind, Workspace
from pbi_readiness_mcp.report import assessment_to_dict

from conftest import Sequence


def _empty_kinds(workspace_id: str, skip=()):
    return {
        item_list_path(workspace_id, kind): {"value": []}
        for kind in ItemKind
        if kind not in skip
    }


def _single_workspace_tenant(detail):
    routes = {
        CAPACITIES_PATH: {
            "value": [
                {"id": "cap-em", "displayName": "Embedded", "sku": "EM3", "region": "West Europe"},
                {"id": "cap-p", "displayName": "Premium", "sku": "P1", "region": "West Europe"},
            ]
        },
        WORKSPACES_PATH: {
            "value": [{"id": "ws1", "name": "Sales", "state": "Active", "capacityId": "cap-em"}]
        },
        item_list_path("ws1", ItemKind.DATASET): {"value": [{"id": "ds1", "name": "Orders"}]},
    }
    routes.update(_empty_kinds("ws1", skip=(ItemKind.DATASET,)))
    if detail is not None:
        routes[dataset_detail_path("ds1")] = detail
    return routes


@pytest.mark.asyncio
async def test_embedded_and_premium_with_large_model(scripted, config) -> None:
    client = scripted(_single_workspace_tenant({"targetStorageMode": "PremiumFiles"}))

    assessment = await run_assessment(client, config)

    findings = assessment.findings
    assert [f.rule for f in findings.blockers] == ["embedded-sku"]
    assert [f.rule for f in findings.warnings] == ["large-models"]
    assert [f.rule for f in findings.infos] == ["premium-sku"]
    assert findings.summary.total_capacities == 2
    assert findings.summary.total_resolved_models == 1
    assert findings.summary.total_skipped == 0


@pytest.mark.asyncio
async def test_missing_detail_is_skipped_not_fatal(scripted, config) -> None:
    client = scripted(_single_workspace_tenant(None))

    assessment = await run_assessment(client, config)

    snapshot = assessment.snapshot
    assert snapshot.details == []
    assert [s.dataset_id for s in snapshot.skipped_models] == ["ds1"]
    assert assessment.findings.summary.total_skipped == 1
    assert [f.rule for f in assessment.findings.warnings] == []


@pytest.mark.asyncio
async def test_shared_only_tenant_is_assessed(scripted, config) -> None:
    routes = {
        CAPACITIES_PATH: {"value": []},
        WORKSPACES_PATH: {
            "value": [
                {"id": "ws1", "name": "Team", "state": "Active"},
                {"id": "ws2", "name": "Old", "state": "Deleted"},
            ]
        },
    }
    routes.update(_empty_kinds("ws1"))
    routes.update(_empty_kinds("ws2"))
    client = scripted(routes)

    assessment = await run_assessment(client, config)

    assert [c.id for c in assessment.snapshot.capacities] == ["-1"]
    assert [f.rule for f in assessment.findings.all()] == ["inactive-workspaces"]
    assert assessment.findings.summary.total_capacities == 0


@pytest.mark.asyncio
async def test_exactly_one_shared_sentinel(scripted, config) -> None:
    routes = {
        CAPACITIES_PATH: {
            "value": [
                {"id": "-1", "displayName": "Shared", "sku": "Shared"},
                {"id": "c1", "sku": "F2"},
                {"id": "c1", "sku": "F2"},
            ]
        },
        WORKSPACES_PATH: {"value": []},
    }

    snapshot = await run_discovery(scripted(routes), config)

    ids = [c.id for c in snapshot.capacities]
    assert ids == ["c1", "-1"]


@pytest.mark.asyncio
async def test_capacity_listing_failure_is_fatal(scripted, config) -> None:
    client = scripted({CAPACITIES_PATH: TransientApiError("HTTP 401 from 'admin/capacities'")})

    with pytest.raises(FatalDiscoveryError) as excinfo:
        await run_discovery(client, config)

    assert excinfo.value.resource == "capacities"
    assert "HTTP 401" in str(excinfo.value)
    assert client.paths() == [CAPACITIES_PATH]


@pytest.mark.asyncio
async def test_workspace_listing_failure_is_fatal(scripted, config) -> None:
    client = scripted({CAPACITIES_PATH: {"value": []}})

    with pytest.raises(FatalDiscoveryError) as excinfo:
        await run_discovery(client, config)

    assert excinfo.value.resource == "workspaces"


@pytest.mark.asyncio
async def test_partial_workspace_listing_is_reported(scripted, config) -> None:
    config.workspace_page_size = 1
    routes = {
        CAPACITIES_PATH: {"value": []},
        WORKSPACES_PATH: Sequence(
            {"value": [{"id": "ws1", "state": "Active"}]},
            TransientApiError("HTTP 503 on second page"),
        ),
    }
    routes.update(_empty_kinds("ws1"))

    snapshot = await run_discovery(scripted(routes), config)

    assert [w.id for w in snapshot.workspaces] == ["ws1"]
    assert snapshot.partial_collections == ["workspaces"]


@pytest.mark.asyncio
async def test_capacity_lookup_and_unknown_references(scripted, config) -> None:
    routes = {
        CAPACITIES_PATH: {"value": [{"id": "c1", "displayName": "Prod", "sku": "F64"}]},
        WORKSPACES_PATH: {
            "value": [
                {"id": "ws1", "state": "Active", "capacityId": "c1"},
                {"id": "ws2", "state": "Active", "capacityId": "c-gone"},
                {"id": "ws3", "state": "Active"},
            ]
        },
    }
    for ws in ("ws1", "ws2", "ws3"):
        routes.update(_empty_kinds(ws))

    snapshot = await run_discovery(scripted(routes), config)

    names = [snapshot.capacity_for(w).id for w in snapshot.workspaces]
    assert names == ["c1", "-1", "-1"]
    assert snapshot.unknown_capacity_refs() == ["ws2"]
    assert snapshot.capacity_for(Workspace(id="x", name="x")).is_shared


@pytest.mark.asyncio
async def test_assessment_report_shape(scripted, config) -> None:
    client = scripted(_single_workspace_tenant(None))

    assessment = await run_assessment(client, config)
    payload = assessment_to_dict(assessment, include_inventory=True)

    assert payload["findings"]["summary"]["blockers"] == 1
    assert payload["findings"]["blockers"][0]["severity"] == "Blocker"
    assert payload["skipped_models"][0]["dataset_id"] == "ds1"
    assert payload["skipped_workspaces"] == []
    assert payload["partial_collections"] == []
    assert payload["started_at"] <= payload["finished_at"]
    inventory = payload["inventory"]
    assert [c["id"] for c in inventory["capacities"]] == ["cap-em", "cap-p", "-1"]
    assert inventory["workspaces"][0]["capacity_name"] == "Embedded"
    assert inventory["items"][0]["kind"] == "Dataset"
    assert inventory["semantic_models"] == []
    assert "inventory" not in assessment_to_dict(assessment)


@pytest.mark.asyncio
async def test_token_outage_during_enumeration_keeps_the_run(config) -> None:
    """Token endpoint goes down after the top-level listings succeed."""
    token_posts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.microsoftonline.com":
            token_posts.append(request)
            if len(token_posts) > 2:
                raise httpx.ConnectError("login host unreachable", request=request)
            # expires_in below the refresh margin: every call fetches anew.
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 1})
        if request.url.path.endswith("/admin/capacities"):
            return httpx.Response(
                200, json={"value": [{"id": "c1", "displayName": "Embedded", "sku": "EM1"}]}
            )
        if request.url.path.endswith("/admin/groups"):
            return httpx.Response(200, json={"value": [{"id": "ws1", "state": "Active"}]})
        return httpx.Response(200, json={"value": []})  # pragma: no cover

    async def fake_sleep(delay: float) -> None:
        return None

    config.access_token = None
    config.tenant_id = "contoso"
    config.client_id = "app-id"
    config.client_secret = "app-secret"
    transport = httpx.MockTransport(handler)
    client = PowerBIAdminClient(
        config=config,
        oauth=OAuthClient(config=config, transport=transport),
        transport=transport,
        sleep=fake_sleep,
    )

    assessment = await run_assessment(client, config)

    snapshot = assessment.snapshot
    assert [w.id for w in snapshot.workspaces] == ["ws1"]
    assert snapshot.items == []
    assert snapshot.skipped_workspaces == []
    assert [e.kind for e in snapshot.errors] == list(ItemKind)
    assert all("login host unreachable" in e.reason for e in snapshot.errors)
    assert [f.rule for f in assessment.findings.blockers] == ["embedded-sku"]
