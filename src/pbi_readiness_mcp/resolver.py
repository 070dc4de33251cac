# Power BI Readiness MCP Server
# File: resolver.py
# Version: v2

"""Semantic model detail resolution.

Every dataset ends up in exactly one of ``resolved`` or ``skipped``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .client import PowerBIAdminClient, dataset_detail_path
from .concurrency import gather_batched
from .models import Item, ItemKind, SemanticModelDetail, SkippedRecord

logger = logging.getLogger(__name__)


@dataclass
class DetailResolution:
    """Accumulator for the detail stage."""

    resolved: List[SemanticModelDetail] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)

    def merge(self, other: "DetailResolution") -> "DetailResolution":
        self.resolved.extend(other.resolved)
        self.skipped.extend(other.skipped)
        return self


def _skip(item: Item, reason: str) -> DetailResolution:
    logger.warning("Skipping semantic model '%s' (%s): %s", item.name, item.id, reason)
    return DetailResolution(
        skipped=[
            SkippedRecord(
                dataset_id=item.id,
                name=item.name,
                workspace_id=item.workspace_id,
                reason=reason,
            )
        ]
    )


async def resolve_detail(client: PowerBIAdminClient, item: Item) -> DetailResolution:
    """Fetch the detail of one dataset, or record why it was skipped."""
    result = await client.call(dataset_detail_path(item.id))
    if result.error is not None:
        return _skip(item, result.error.reason)

    detail = SemanticModelDetail.from_api(result.data, item)
    if detail is None:
        return _skip(item, f"Unexpected detail payload of type {type(result.data).__name__}.")

    return DetailResolution(resolved=[detail])


async def resolve_details(
    client: PowerBIAdminClient,
    dataset_items: Iterable[Item],
    *,
    max_workers: int = 1,
) -> DetailResolution:
    """Resolve detail for each Dataset item. Other kinds are ignored."""
    datasets = [item for item in dataset_items if item.kind is ItemKind.DATASET]

    async def _worker(item: Item) -> DetailResolution:
        return await resolve_detail(client, item)

    parts = await gather_batched(datasets, _worker, max_workers=max_workers)

    total = DetailResolution()
    for part in parts:
        total.merge(part)

    logger.info(
        "Resolved %d of %d semantic model(s); %d skipped",
        len(total.resolved),
        len(datasets),
        len(total.skipped),
    )
    return total


__all__ = ["DetailResolution", "resolve_detail", "resolve_details"]
