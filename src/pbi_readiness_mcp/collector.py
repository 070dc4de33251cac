# Power BI Readiness MCP Server
# File: collector.py
# Version: v2

"""Paginated collection on top of the endpoint client.

``collect_all`` drives one resource across its pages in a single forward
pass. Three paging styles are understood, checked in this order on every
page:

- ``@odata.nextLink`` / ``continuationUri``: absolute URL of the next page
- ``continuationToken``: re-request the same path with the token
- ``$top``/``$skip``: used when a ``page_size`` is given; a short page ends
  the pass

The result says *why* collection stopped via ``status``, so a truncated
listing is never mistaken for a complete one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from .client import PowerBIAdminClient
from .errors import AdminApiError, TransientApiError

logger = logging.getLogger(__name__)


class CollectionStatus(str, Enum):
    COMPLETE = "complete"
    # A page after the first failed; records hold what came before it.
    PARTIAL = "partial"
    # The first page failed; nothing is usable.
    FAILED = "failed"


@dataclass
class CollectionResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    status: CollectionStatus = CollectionStatus.COMPLETE
    error: Optional[AdminApiError] = None
    pages: int = 0

    @property
    def ok(self) -> bool:
        return self.status is not CollectionStatus.FAILED


def _page_records(body: Any) -> List[Dict[str, Any]]:
    raw = body.get("value") if isinstance(body, dict) else body
    if not isinstance(raw, list):
        return []
    return [r for r in raw if isinstance(r, dict)]


def _continuation(body: Any) -> Optional[Tuple[str, str]]:
    """Return ("link", url) or ("token", token) for the next page, if any."""
    if not isinstance(body, dict):
        return None
    for key in ("@odata.nextLink", "continuationUri"):
        link = body.get(key)
        if isinstance(link, str) and link.strip():
            return "link", link.strip()
    token = body.get("continuationToken")
    if isinstance(token, str) and token.strip():
        return "token", token.strip()
    return None


async def collect_all(
    client: PowerBIAdminClient,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    page_size: Optional[int] = None,
    max_pages: int = 1000,
) -> CollectionResult:
    """Collect every record of *path* across all of its pages."""
    base_params: Dict[str, Any] = dict(params or {})

    next_path = path
    next_params: Optional[Dict[str, Any]] = dict(base_params)
    if page_size:
        next_params["$top"] = int(page_size)

    records: List[Dict[str, Any]] = []
    seen_markers: Set[str] = set()
    pages = 0
    skip = 0

    def _partial(error: AdminApiError) -> CollectionResult:
        logger.warning(
            "Collection of '%s' stopped after %d page(s) with %d record(s): %s",
            path,
            pages,
            len(records),
            error.reason,
        )
        return CollectionResult(
            records=records,
            status=CollectionStatus.PARTIAL,
            error=error,
            pages=pages,
        )

    while True:
        if pages >= max_pages:
            return _partial(TransientApiError(f"Page limit of {max_pages} reached for '{path}'."))

        result = await client.call(next_path, next_params)
        if result.error is not None:
            if pages == 0:
                return CollectionResult(
                    records=[],
                    status=CollectionStatus.FAILED,
                    error=result.error,
                    pages=0,
                )
            return _partial(result.error)

        pages += 1
        page_records = _page_records(result.data)
        records.extend(page_records)

        marker = _continuation(result.data)
        if marker is not None:
            marker_kind, value = marker
            if value in seen_markers:
                return _partial(
                    TransientApiError(f"Continuation marker repeated while paging '{path}'.")
                )
            seen_markers.add(value)

            if marker_kind == "link":
                next_path, next_params = value, None
            else:
                next_path = path
                next_params = {**base_params, "continuationToken": value}
            continue

        if page_size and len(page_records) >= page_size:
            skip += len(page_records)
            next_path = path
            next_params = {**base_params, "$top": int(page_size), "$skip": skip}
            continue

        return CollectionResult(records=records, status=CollectionStatus.COMPLETE, pages=pages)


__all__ = ["CollectionResult", "CollectionStatus", "collect_all"]
