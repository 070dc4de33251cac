# Power BI Readiness MCP Server
# File: classifier.py
# Version: v3

"""Migration-readiness rules.

``classify`` is a pure function of the discovery snapshot. Every rule is
evaluated independently and contributes zero or more findings; within each
severity list findings appear in rule order. Findings that enumerate
entities are sorted by id, so the same content in any order classifies
identically.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Sequence, Tuple

from .models import (
    Capacity,
    Finding,
    Findings,
    Item,
    ItemKind,
    SemanticModelDetail,
    Severity,
    SkippedRecord,
    StorageMode,
    SummaryCounts,
    Workspace,
    normalize_region,
)


EMBEDDED_SKU_PREFIX = "EM"
AZURE_SKU_PREFIX = "A"
PREMIUM_SKU_PREFIX = "P"


class Snapshot:
    """Sorted, read-only view of the inputs shared by all rules."""

    def __init__(
        self,
        capacities: Iterable[Capacity],
        workspaces: Iterable[Workspace],
        items: Iterable[Item],
        details: Iterable[SemanticModelDetail],
    ) -> None:
        self.capacities: Tuple[Capacity, ...] = tuple(
            sorted((c for c in capacities if not c.is_shared), key=lambda c: c.id)
        )
        self.workspaces: Tuple[Workspace, ...] = tuple(sorted(workspaces, key=lambda w: w.id))
        self.items: Tuple[Item, ...] = tuple(
            sorted(items, key=lambda i: (i.workspace_id, i.kind.value, i.id))
        )
        self.details: Tuple[SemanticModelDetail, ...] = tuple(
            sorted(details, key=lambda d: d.dataset_id)
        )

    def capacities_with_prefix(self, prefix: str) -> List[Capacity]:
        return [c for c in self.capacities if c.sku.upper().startswith(prefix)]

    def items_of(self, kind: ItemKind) -> List[Item]:
        return [i for i in self.items if i.kind is kind]


Rule = Callable[[Snapshot], List[Finding]]


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    if count == 1:
        return f"{count} {singular}"
    return f"{count} {plural or singular + 's'}"


# ---------------------------------------------------------------------------
# Rules, in report order
# ---------------------------------------------------------------------------


def rule_embedded_sku(snapshot: Snapshot) -> List[Finding]:
    return [
        Finding(
            rule="embedded-sku",
            severity=Severity.BLOCKER,
            message=(
                f"Capacity '{c.name}' uses Embedded SKU {c.sku}. Embedded capacities "
                "cannot host Fabric workloads; move its workspaces to an F SKU "
                "capacity before migrating."
            ),
            references=(c.id,),
        )
        for c in snapshot.capacities_with_prefix(EMBEDDED_SKU_PREFIX)
    ]


def rule_azure_sku(snapshot: Snapshot) -> List[Finding]:
    return [
        Finding(
            rule="azure-sku",
            severity=Severity.INFO,
            message=(
                f"Capacity '{c.name}' uses Azure SKU {c.sku}. It is billed through "
                "Azure; size the equivalent F SKU and plan the switch of billing."
            ),
            references=(c.id,),
        )
        for c in snapshot.capacities_with_prefix(AZURE_SKU_PREFIX)
    ]


def rule_premium_sku(snapshot: Snapshot) -> List[Finding]:
    premium = snapshot.capacities_with_prefix(PREMIUM_SKU_PREFIX)
    if not premium:
        return []
    return [
        Finding(
            rule="premium-sku",
            severity=Severity.INFO,
            message=(
                f"{_plural(len(premium), 'Premium P-SKU capacity', 'Premium P-SKU capacities')} "
                "found. P SKUs are being retired; plan the conversion to F SKUs "
                "at renewal."
            ),
            count=len(premium),
            references=tuple(c.id for c in premium),
        )
    ]


def rule_cross_region(snapshot: Snapshot) -> List[Finding]:
    regions = sorted({r for r in (normalize_region(c.region) for c in snapshot.capacities) if r})
    if len(regions) <= 1:
        return []
    return [
        Finding(
            rule="cross-region",
            severity=Severity.WARNING,
            message=(
                f"Capacities span {len(regions)} regions ({', '.join(regions)}). "
                "Workspaces holding Fabric items cannot move across regions; keep "
                "each workspace's target capacity in its current region."
            ),
            count=len(regions),
            references=tuple(c.id for c in snapshot.capacities if normalize_region(c.region)),
        )
    ]


def rule_legacy_dataflows(snapshot: Snapshot) -> List[Finding]:
    dataflows = snapshot.items_of(ItemKind.DATAFLOW)
    if not dataflows:
        return []
    return [
        Finding(
            rule="legacy-dataflows",
            severity=Severity.WARNING,
            message=(
                f"{_plural(len(dataflows), 'legacy dataflow')} (Gen1) found. "
                "Plan to rebuild them as Dataflow Gen2 or pipelines."
            ),
            count=len(dataflows),
            references=tuple(i.id for i in dataflows),
        )
    ]


def rule_paginated_reports(snapshot: Snapshot) -> List[Finding]:
    paginated = [i for i in snapshot.items_of(ItemKind.REPORT) if i.is_paginated]
    if not paginated:
        return []
    return [
        Finding(
            rule="paginated-reports",
            severity=Severity.WARNING,
            message=(
                f"{_plural(len(paginated), 'paginated report')} found. Paginated "
                "reports need capacity backing; confirm the target capacity and "
                "re-test data sources after migration."
            ),
            count=len(paginated),
            references=tuple(i.id for i in paginated),
        )
    ]


def rule_large_models(snapshot: Snapshot) -> List[Finding]:
    large = [d for d in snapshot.details if d.storage_mode is StorageMode.LARGE]
    if not large:
        return []
    return [
        Finding(
            rule="large-models",
            severity=Severity.WARNING,
            message=(
                "Large storage format is enabled on "
                f"{_plural(len(large), 'semantic model')}. Check that the target F SKU offers enough memory per model."
            ),
            count=len(large),
            references=tuple(d.dataset_id for d in large),
        )
    ]


def rule_inactive_workspaces(snapshot: Snapshot) -> List[Finding]:
    inactive = [w for w in snapshot.workspaces if not w.is_active]
    if not inactive:
        return []
    return [
        Finding(
            rule="inactive-workspaces",
            severity=Severity.WARNING,
            message=(
                f"{_plural(len(inactive), 'workspace')} not in the Active state. "
                "Restore or clean them up before assigning capacities."
            ),
            count=len(inactive),
            references=tuple(w.id for w in inactive),
        )
    ]


def rule_rls_models(snapshot: Snapshot) -> List[Finding]:
    rls = [d for d in snapshot.details if d.is_effective_identity_required]
    if not rls:
        return []
    return [
        Finding(
            rule="rls-models",
            severity=Severity.INFO,
            message=(
                "Effective identity (row-level security) is required by "
                f"{_plural(len(rls), 'semantic model')}. Re-test RLS roles after migration."
            ),
            count=len(rls),
            references=tuple(d.dataset_id for d in rls),
        )
    ]


def rule_dashboards(snapshot: Snapshot) -> List[Finding]:
    dashboards = snapshot.items_of(ItemKind.DASHBOARD)
    if not dashboards:
        return []
    return [
        Finding(
            rule="dashboards",
            severity=Severity.INFO,
            message=(
                f"{_plural(len(dashboards), 'dashboard')} found. Dashboards move with "
                "their workspace; review pinned tiles once reports are migrated."
            ),
            count=len(dashboards),
            references=tuple(i.id for i in dashboards),
        )
    ]


RULES: Tuple[Rule, ...] = (
    rule_embedded_sku,
    rule_azure_sku,
    rule_premium_sku,
    rule_cross_region,
    rule_legacy_dataflows,
    rule_paginated_reports,
    rule_large_models,
    rule_inactive_workspaces,
    rule_rls_models,
    rule_dashboards,
)


def classify(
    capacities: Iterable[Capacity],
    workspaces: Iterable[Workspace],
    items: Iterable[Item],
    details: Iterable[SemanticModelDetail],
    skipped: Sequence[SkippedRecord] = (),
) -> Findings:
    """Apply every readiness rule and summarise the snapshot."""
    snapshot = Snapshot(capacities, workspaces, items, details)

    blockers: List[Finding] = []
    warnings: List[Finding] = []
    infos: List[Finding] = []
    by_severity = {
        Severity.BLOCKER: blockers,
        Severity.WARNING: warnings,
        Severity.INFO: infos,
    }

    for rule in RULES:
        for finding in rule(snapshot):
            by_severity[finding.severity].append(finding)

    summary = SummaryCounts(
        total_capacities=len(snapshot.capacities),
        total_workspaces=len(snapshot.workspaces),
        total_items=len(snapshot.items),
        total_resolved_models=len(snapshot.details),
        total_skipped=len(skipped),
        blockers=len(blockers),
        warnings=len(warnings),
        infos=len(infos),
    )

    return Findings(
        blockers=tuple(blockers),
        warnings=tuple(warnings),
        infos=tuple(infos),
        summary=summary,
    )


__all__ = ["RULES", "classify"]
