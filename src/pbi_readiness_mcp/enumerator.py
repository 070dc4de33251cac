# Power BI Readiness MCP Server
# File: enumerator.py
# Version: v3

"""Per-workspace item enumeration.

Each workspace is walked kind by kind (datasets, reports, dashboards,
dataflows). Failures stay local to the workspace and kind they happened in:

- a NotFound on the *dataset* listing means the workspace is inaccessible;
  it is recorded as skipped and no other kinds are requested for it
- any other failure is recorded as an ``EnumerationError`` and that kind's
  items are simply missing for the workspace

Item order is workspace order, then kind order, then provider order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .client import PowerBIAdminClient, item_list_path
from .collector import CollectionStatus, collect_all
from .concurrency import gather_batched
from .errors import NotFoundApiError
from .models import Item, ItemKind, Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnumerationError:
    """A per-workspace, per-kind listing failure that was recovered from."""

    workspace_id: str
    kind: ItemKind
    reason: str
    # True when some items of this kind were still collected.
    partial: bool = False


@dataclass
class ItemEnumeration:
    """Accumulator for the enumeration stage."""

    items: List[Item] = field(default_factory=list)
    skipped_workspaces: List[str] = field(default_factory=list)
    errors: List[EnumerationError] = field(default_factory=list)

    def merge(self, other: "ItemEnumeration") -> "ItemEnumeration":
        """Append *other* after this accumulator's contents and return self."""
        self.items.extend(other.items)
        self.skipped_workspaces.extend(other.skipped_workspaces)
        self.errors.extend(other.errors)
        return self


async def enumerate_workspace(
    client: PowerBIAdminClient,
    workspace: Workspace,
    *,
    max_pages: int = 1000,
) -> ItemEnumeration:
    """Enumerate every item kind of a single workspace."""
    acc = ItemEnumeration()

    for kind in ItemKind:
        result = await collect_all(client, item_list_path(workspace.id, kind), max_pages=max_pages)

        if result.status is CollectionStatus.FAILED:
            reason = result.error.reason if result.error else "unknown error"
            if kind is ItemKind.DATASET and isinstance(result.error, NotFoundApiError):
                logger.warning(
                    "Skipping workspace '%s' (%s): dataset listing not found: %s",
                    workspace.name,
                    workspace.id,
                    reason,
                )
                acc.skipped_workspaces.append(workspace.id)
                return acc

            logger.warning(
                "Could not list %s items in workspace '%s' (%s): %s",
                kind.value,
                workspace.name,
                workspace.id,
                reason,
            )
            acc.errors.append(EnumerationError(workspace_id=workspace.id, kind=kind, reason=reason))
            continue

        for record in result.records:
            item = Item.from_api(record, workspace.id, kind)
            if item is None:
                logger.debug("Ignoring %s record without an id in workspace %s", kind.value, workspace.id)
                continue
            acc.items.append(item)

        if result.status is CollectionStatus.PARTIAL:
            acc.errors.append(
                EnumerationError(
                    workspace_id=workspace.id,
                    kind=kind,
                    reason=result.error.reason if result.error else "listing truncated",
                    partial=True,
                )
            )

    return acc


async def enumerate_items(
    client: PowerBIAdminClient,
    workspaces: Iterable[Workspace],
    *,
    max_workers: int = 1,
    max_pages: int = 1000,
) -> ItemEnumeration:
    """Enumerate items for every workspace; never aborts on a single failure.

    With ``max_workers > 1`` workspaces are processed in concurrent batches.
    Per-workspace results are still merged in input order, but callers
    should only rely on ordering within a workspace and kind.
    """
    workspace_list = list(workspaces)

    async def _worker(workspace: Workspace) -> ItemEnumeration:
        return await enumerate_workspace(client, workspace, max_pages=max_pages)

    parts = await gather_batched(workspace_list, _worker, max_workers=max_workers)

    total = ItemEnumeration()
    for part in parts:
        total.merge(part)

    logger.info(
        "Enumerated %d item(s) across %d workspace(s); %d skipped, %d listing error(s)",
        len(total.items),
        len(workspace_list),
        len(total.skipped_workspaces),
        len(total.errors),
    )
    return total


__all__ = [
    "EnumerationError",
    "ItemEnumeration",
    "enumerate_items",
    "enumerate_workspace",
]
