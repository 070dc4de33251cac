# Power BI Readiness MCP Server
# File: discovery.py
# Version: v2

"""Discovery run orchestration.

Stages run one after another, each consuming the full result of the
previous one:

1. capacities (plus the shared sentinel)
2. workspaces
3. items per workspace
4. semantic model detail per dataset
5. classification

Only a failure to list capacities or workspaces aborts the run, with
``FatalDiscoveryError``. Everything else ends up in the snapshot's skip and
error listings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .classifier import classify
from .client import CAPACITIES_PATH, WORKSPACES_PATH, PowerBIAdminClient
from .collector import CollectionResult, CollectionStatus, collect_all
from .config import ReadinessConfig
from .enumerator import EnumerationError, enumerate_items
from .errors import FatalDiscoveryError, TransientApiError
from .models import (
    Capacity,
    Findings,
    Item,
    ItemKind,
    SemanticModelDetail,
    SkippedRecord,
    Workspace,
)
from .resolver import resolve_details

logger = logging.getLogger(__name__)


@dataclass
class DiscoverySnapshot:
    """Everything one discovery run learned about the tenant."""

    capacities: List[Capacity]
    workspaces: List[Workspace]
    items: List[Item] = field(default_factory=list)
    details: List[SemanticModelDetail] = field(default_factory=list)
    skipped_models: List[SkippedRecord] = field(default_factory=list)
    skipped_workspaces: List[str] = field(default_factory=list)
    errors: List[EnumerationError] = field(default_factory=list)
    # Top-level listings that ended early; their contents are incomplete.
    partial_collections: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def datasets(self) -> List[Item]:
        return [i for i in self.items if i.kind is ItemKind.DATASET]

    def capacity_for(self, workspace: Workspace) -> Capacity:
        """The workspace's capacity; the shared sentinel if unassigned or unknown."""
        shared = next((c for c in self.capacities if c.is_shared), Capacity.shared())
        if not workspace.capacity_id:
            return shared
        for capacity in self.capacities:
            if capacity.id == workspace.capacity_id:
                return capacity
        return shared

    def unknown_capacity_refs(self) -> List[str]:
        """Ids of workspaces pointing at a capacity missing from this run."""
        known = {c.id for c in self.capacities}
        return [
            w.id
            for w in self.workspaces
            if w.capacity_id and w.capacity_id not in known
        ]


@dataclass
class Assessment:
    snapshot: DiscoverySnapshot
    findings: Findings


def _require(result: CollectionResult, resource: str) -> None:
    if result.status is CollectionStatus.FAILED:
        cause = result.error or TransientApiError(f"Listing {resource} failed.")
        logger.error("Cannot continue discovery: %s", cause.reason)
        raise FatalDiscoveryError(resource, cause)


async def discover_capacities(
    client: PowerBIAdminClient,
    config: ReadinessConfig,
) -> tuple[List[Capacity], CollectionResult]:
    """List capacities and append exactly one shared sentinel."""
    result = await collect_all(client, CAPACITIES_PATH, max_pages=config.max_pages)
    _require(result, "capacities")

    capacities: List[Capacity] = []
    seen: set[str] = set()
    for record in result.records:
        capacity = Capacity.from_api(record)
        if capacity is None or capacity.is_shared or capacity.id in seen:
            continue
        seen.add(capacity.id)
        capacities.append(capacity)

    capacities.append(Capacity.shared())
    return capacities, result


async def discover_workspaces(
    client: PowerBIAdminClient,
    config: ReadinessConfig,
) -> tuple[List[Workspace], CollectionResult]:
    result = await collect_all(
        client,
        WORKSPACES_PATH,
        page_size=config.workspace_page_size,
        max_pages=config.max_pages,
    )
    _require(result, "workspaces")

    workspaces: List[Workspace] = []
    seen: set[str] = set()
    for record in result.records:
        workspace = Workspace.from_api(record)
        if workspace is None or workspace.id in seen:
            continue
        seen.add(workspace.id)
        workspaces.append(workspace)
    return workspaces, result


async def run_discovery(
    client: PowerBIAdminClient,
    config: ReadinessConfig,
) -> DiscoverySnapshot:
    """Walk the tenant and return an immutable-by-convention snapshot."""
    started_at = datetime.now(timezone.utc)
    partial: List[str] = []

    capacities, capacity_result = await discover_capacities(client, config)
    if capacity_result.status is CollectionStatus.PARTIAL:
        partial.append("capacities")
    logger.info("Discovered %d capacities (plus shared)", len(capacities) - 1)

    workspaces, workspace_result = await discover_workspaces(client, config)
    if workspace_result.status is CollectionStatus.PARTIAL:
        partial.append("workspaces")
    logger.info("Discovered %d workspaces", len(workspaces))

    enumeration = await enumerate_items(
        client,
        workspaces,
        max_workers=config.max_workers,
        max_pages=config.max_pages,
    )

    resolution = await resolve_details(
        client,
        [i for i in enumeration.items if i.kind is ItemKind.DATASET],
        max_workers=config.max_workers,
    )

    return DiscoverySnapshot(
        capacities=capacities,
        workspaces=workspaces,
        items=enumeration.items,
        details=resolution.resolved,
        skipped_models=resolution.skipped,
        skipped_workspaces=enumeration.skipped_workspaces,
        errors=enumeration.errors,
        partial_collections=partial,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )


def assess_snapshot(snapshot: DiscoverySnapshot) -> Findings:
    return classify(
        snapshot.capacities,
        snapshot.workspaces,
        snapshot.items,
        snapshot.details,
        snapshot.skipped_models,
    )


async def run_assessment(
    client: PowerBIAdminClient,
    config: ReadinessConfig,
) -> Assessment:
    """Discovery followed by classification."""
    snapshot = await run_discovery(client, config)
    findings = assess_snapshot(snapshot)
    logger.info(
        "Assessment complete: %d blocker(s), %d warning(s), %d informational",
        findings.summary.blockers,
        findings.summary.warnings,
        findings.summary.infos,
    )
    return Assessment(snapshot=snapshot, findings=findings)


__all__ = [
    "Assessment",
    "DiscoverySnapshot",
    "assess_snapshot",
    "discover_capacities",
    "discover_workspaces",
    "run_assessment",
    "run_discovery",
]
