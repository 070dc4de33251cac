# Power BI Readiness MCP Server
# File: report.py
# Version: v1

"""JSON-serialisable views of an assessment, for MCP tools and exporters."""

from __future__ import annotations

from typing import Any, Dict, List

from .discovery import Assessment, DiscoverySnapshot
from .models import Capacity, Finding, Findings, Item, SemanticModelDetail, Workspace


def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    return {
        "rule": finding.rule,
        "severity": finding.severity.value,
        "message": finding.message,
        "count": finding.count,
        "references": list(finding.references),
    }


def findings_to_dict(findings: Findings) -> Dict[str, Any]:
    s = findings.summary
    return {
        "blockers": [finding_to_dict(f) for f in findings.blockers],
        "warnings": [finding_to_dict(f) for f in findings.warnings],
        "infos": [finding_to_dict(f) for f in findings.infos],
        "summary": {
            "total_capacities": s.total_capacities,
            "total_workspaces": s.total_workspaces,
            "total_items": s.total_items,
            "total_resolved_models": s.total_resolved_models,
            "total_skipped": s.total_skipped,
            "blockers": s.blockers,
            "warnings": s.warnings,
            "infos": s.infos,
        },
    }


def capacity_to_dict(capacity: Capacity) -> Dict[str, Any]:
    return {
        "id": capacity.id,
        "name": capacity.name,
        "sku": capacity.sku,
        "state": capacity.state,
        "region": capacity.region,
        "admins": list(capacity.admins),
        "is_shared": capacity.is_shared,
    }


def workspace_to_dict(workspace: Workspace, snapshot: DiscoverySnapshot | None = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": workspace.id,
        "name": workspace.name,
        "state": workspace.state,
        "type": workspace.type,
        "capacity_id": workspace.capacity_id,
        "is_read_only": workspace.is_read_only,
        "is_on_dedicated_capacity": workspace.is_on_dedicated_capacity,
    }
    if snapshot is not None:
        out["capacity_name"] = snapshot.capacity_for(workspace).name
    return out


def item_to_dict(item: Item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "workspace_id": item.workspace_id,
        "kind": item.kind.value,
        "report_type": item.report_type,
        "dataset_id": item.dataset_id,
        "is_refreshable": item.is_refreshable,
    }


def detail_to_dict(detail: SemanticModelDetail) -> Dict[str, Any]:
    return {
        "dataset_id": detail.dataset_id,
        "name": detail.name,
        "workspace_id": detail.workspace_id,
        "configured_by": detail.configured_by,
        "is_refreshable": detail.is_refreshable,
        "storage_mode": detail.storage_mode.value,
        "is_effective_identity_required": detail.is_effective_identity_required,
        "is_effective_identity_roles_required": detail.is_effective_identity_roles_required,
        "is_gateway_required": detail.is_gateway_required,
        "created_date": detail.created_date.isoformat() if detail.created_date else None,
    }


def assessment_to_dict(assessment: Assessment, include_inventory: bool = False) -> Dict[str, Any]:
    """Findings, skip listings and errors; inventory lists on request."""
    snapshot = assessment.snapshot

    out: Dict[str, Any] = {
        "findings": findings_to_dict(assessment.findings),
        "skipped_models": [
            {
                "dataset_id": s.dataset_id,
                "name": s.name,
                "workspace_id": s.workspace_id,
                "reason": s.reason,
            }
            for s in snapshot.skipped_models
        ],
        "skipped_workspaces": list(snapshot.skipped_workspaces),
        "errors": [
            {
                "workspace_id": e.workspace_id,
                "kind": e.kind.value,
                "reason": e.reason,
                "partial": e.partial,
            }
            for e in snapshot.errors
        ],
        "partial_collections": list(snapshot.partial_collections),
        "unknown_capacity_refs": snapshot.unknown_capacity_refs(),
        "started_at": snapshot.started_at.isoformat() if snapshot.started_at else None,
        "finished_at": snapshot.finished_at.isoformat() if snapshot.finished_at else None,
    }

    if include_inventory:
        inventory: Dict[str, List[Dict[str, Any]]] = {
            "capacities": [capacity_to_dict(c) for c in snapshot.capacities],
            "workspaces": [workspace_to_dict(w, snapshot) for w in snapshot.workspaces],
            "items": [item_to_dict(i) for i in snapshot.items],
            "semantic_models": [detail_to_dict(d) for d in snapshot.details],
        }
        out["inventory"] = inventory

    return out


__all__ = [
    "assessment_to_dict",
    "capacity_to_dict",
    "detail_to_dict",
    "finding_to_dict",
    "findings_to_dict",
    "item_to_dict",
    "workspace_to_dict",
]
