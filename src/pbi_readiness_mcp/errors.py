# Power BI Readiness MCP Server
# File: errors.py
# Version: v1

"""Error taxonomy for admin API calls and discovery runs.

``AdminApiError`` subclasses are *returned* inside results by the endpoint
client and collectors; they are values describing what went wrong with one
logical call. Only ``FatalDiscoveryError`` is raised, when the capacity or
workspace list cannot be obtained and there is nothing to analyse.
"""

from __future__ import annotations

from typing import Optional


class AdminApiError(Exception):
    """Failure of a single logical admin API call."""

    retryable = False

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
        self.code = code

    def __str__(self) -> str:
        return self.reason

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(reason={self.reason!r}, "
            f"status_code={self.status_code!r}, code={self.code!r})"
        )


class TransientApiError(AdminApiError):
    """Network errors, throttling, 5xx and anything else worth retrying."""

    retryable = True


class NotFoundApiError(AdminApiError):
    """Resource absent or inaccessible. Never retried."""


class FatalDiscoveryError(RuntimeError):
    """The top-level capacity or workspace list could not be obtained."""

    def __init__(self, resource: str, cause: AdminApiError) -> None:
        super().__init__(f"Failed to list {resource}: {cause.reason}")
        self.resource = resource
        self.cause = cause


__all__ = [
    "AdminApiError",
    "FatalDiscoveryError",
    "NotFoundApiError",
    "TransientApiError",
]
