# Power BI Readiness MCP Server
# File: models.py
# Version: v4

"""Domain models used by the Power BI Readiness MCP server.

Every entity is an immutable snapshot of remote state, built once per
discovery run by a ``from_api`` constructor. The constructors are the only
place where loosely-typed API payloads are read; they return ``None`` for
payloads that cannot identify an entity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


SHARED_CAPACITY_ID = "-1"
SHARED_SKU = "Shared"

_NO_REGION_VALUES = {"", "n/a"}


def normalize_region(value: Any) -> Optional[str]:
    """Return a region name, or None for null / blank / "N/A" values."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NO_REGION_VALUES:
        return None
    return text


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_FRACTION_RE = re.compile(r"\.(\d+)")


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse the ISO timestamps the admin API returns.

    The service emits up to seven fractional digits and a trailing ``Z``,
    neither of which ``datetime.fromisoformat`` accepts on every Python.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Inventory entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Capacity:
    """A provisioned capacity, or the shared sentinel (id ``"-1"``)."""

    id: str
    name: str
    sku: str
    state: Optional[str] = None
    region: Optional[str] = None
    admins: Tuple[str, ...] = ()

    # Raw JSON payload from the API, for debugging / advanced use.
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def is_shared(self) -> bool:
        return self.id == SHARED_CAPACITY_ID

    @classmethod
    def shared(cls) -> "Capacity":
        """The sentinel standing for "no dedicated capacity"."""
        return cls(id=SHARED_CAPACITY_ID, name="Shared capacity", sku=SHARED_SKU, state="Active")

    @classmethod
    def from_api(cls, payload: Any) -> Optional["Capacity"]:
        if not isinstance(payload, dict):
            return None
        capacity_id = _as_str(payload.get("id"))
        if capacity_id is None:
            return None

        admins = payload.get("admins") or []
        if not isinstance(admins, list):
            admins = [admins]

        return cls(
            id=capacity_id,
            name=_as_str(payload.get("displayName") or payload.get("name")) or capacity_id,
            sku=_as_str(payload.get("sku")) or "",
            state=_as_str(payload.get("state")),
            region=normalize_region(payload.get("region") or payload.get("location")),
            admins=tuple(str(a) for a in admins if a),
            raw=payload,
        )


@dataclass(frozen=True)
class Workspace:
    """A workspace (``group`` in the admin API)."""

    id: str
    name: str
    state: Optional[str] = None
    type: Optional[str] = None
    capacity_id: Optional[str] = None
    is_read_only: bool = False
    is_on_dedicated_capacity: bool = False

    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def is_active(self) -> bool:
        return (self.state or "").lower() == "active"

    @classmethod
    def from_api(cls, payload: Any) -> Optional["Workspace"]:
        if not isinstance(payload, dict):
            return None
        workspace_id = _as_str(payload.get("id"))
        if workspace_id is None:
            return None

        return cls(
            id=workspace_id,
            name=_as_str(payload.get("name")) or workspace_id,
            state=_as_str(payload.get("state")),
            type=_as_str(payload.get("type")),
            capacity_id=_as_str(payload.get("capacityId")),
            is_read_only=_as_bool(payload.get("isReadOnly")),
            is_on_dedicated_capacity=_as_bool(payload.get("isOnDedicatedCapacity")),
            raw=payload,
        )


class ItemKind(str, Enum):
    """Item kinds, declared in enumeration order."""

    DATASET = "Dataset"
    REPORT = "Report"
    DASHBOARD = "Dashboard"
    DATAFLOW = "Dataflow"


PAGINATED_REPORT_TYPE = "PaginatedReport"


@dataclass(frozen=True)
class Item:
    """A content item owned by a workspace."""

    id: str
    name: str
    workspace_id: str
    kind: ItemKind

    # Report only
    report_type: Optional[str] = None
    dataset_id: Optional[str] = None

    # Dataset only
    is_refreshable: Optional[bool] = None

    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def is_paginated(self) -> bool:
        return self.kind is ItemKind.REPORT and self.report_type == PAGINATED_REPORT_TYPE

    @classmethod
    def from_api(cls, payload: Any, workspace_id: str, kind: ItemKind) -> Optional["Item"]:
        if not isinstance(payload, dict):
            return None
        # Dataflows are keyed by objectId
        item_id = _as_str(payload.get("id") or payload.get("objectId"))
        if item_id is None:
            return None

        name = _as_str(payload.get("name") or payload.get("displayName")) or item_id

        report_type = None
        dataset_id = None
        is_refreshable = None
        if kind is ItemKind.REPORT:
            report_type = _as_str(payload.get("reportType"))
            dataset_id = _as_str(payload.get("datasetId"))
        elif kind is ItemKind.DATASET:
            if "isRefreshable" in payload:
                is_refreshable = _as_bool(payload.get("isRefreshable"))

        return cls(
            id=item_id,
            name=name,
            workspace_id=workspace_id,
            kind=kind,
            report_type=report_type,
            dataset_id=dataset_id,
            is_refreshable=is_refreshable,
            raw=payload,
        )


class StorageMode(str, Enum):
    IMPORT = "Import"
    DIRECT_QUERY = "DirectQuery"
    LARGE = "PremiumFiles"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> "StorageMode":
        text = (_as_str(value) or "").lower()
        if text in {"abf", "import"}:
            return cls.IMPORT
        if text == "directquery":
            return cls.DIRECT_QUERY
        if text in {"premiumfiles", "large"}:
            return cls.LARGE
        return cls.UNKNOWN


@dataclass(frozen=True)
class SemanticModelDetail:
    """Extended detail of a Dataset item."""

    dataset_id: str
    name: str
    workspace_id: str
    configured_by: Optional[str] = None
    is_refreshable: bool = False
    storage_mode: StorageMode = StorageMode.UNKNOWN
    is_effective_identity_required: bool = False
    is_effective_identity_roles_required: bool = False
    is_gateway_required: bool = False
    created_date: Optional[datetime] = None

    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: Any, item: Item) -> Optional["SemanticModelDetail"]:
        if not isinstance(payload, dict):
            return None

        return cls(
            dataset_id=item.id,
            name=_as_str(payload.get("name")) or item.name,
            workspace_id=item.workspace_id,
            configured_by=_as_str(payload.get("configuredBy")),
            is_refreshable=_as_bool(payload.get("isRefreshable")),
            storage_mode=StorageMode.parse(payload.get("targetStorageMode")),
            is_effective_identity_required=_as_bool(payload.get("isEffectiveIdentityRequired")),
            is_effective_identity_roles_required=_as_bool(
                payload.get("isEffectiveIdentityRolesRequired")
            ),
            is_gateway_required=_as_bool(payload.get("isOnPremGatewayRequired")),
            created_date=_parse_datetime(payload.get("createdDate")),
            raw=payload,
        )


@dataclass(frozen=True)
class SkippedRecord:
    """A dataset whose detail could not be resolved, and why."""

    dataset_id: str
    name: str
    workspace_id: str
    reason: str


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    BLOCKER = "Blocker"
    WARNING = "Warning"
    INFO = "Informational"


@dataclass(frozen=True)
class Finding:
    """A severity-tagged migration-readiness observation."""

    rule: str
    severity: Severity
    message: str
    count: Optional[int] = None
    references: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SummaryCounts:
    total_capacities: int = 0
    total_workspaces: int = 0
    total_items: int = 0
    total_resolved_models: int = 0
    total_skipped: int = 0
    blockers: int = 0
    warnings: int = 0
    infos: int = 0


@dataclass(frozen=True)
class Findings:
    blockers: Tuple[Finding, ...] = ()
    warnings: Tuple[Finding, ...] = ()
    infos: Tuple[Finding, ...] = ()
    summary: SummaryCounts = SummaryCounts()

    def all(self) -> Tuple[Finding, ...]:
        """Blockers, then warnings, then informational findings."""
        return self.blockers + self.warnings + self.infos
