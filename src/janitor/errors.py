"""Janitor error taxonomy.

Fatal errors (OrchestrationError, PersistenceError) abort the run before the
ledger is reconciled or saved. EnumerationError aborts a single category in a
single region. DeleteError and ReferenceRevokeError are per-resource and only
ever logged and recorded.
"""

from __future__ import annotations

from typing import Optional


class JanitorError(Exception):
    """Base class for all janitor errors."""


class EnumerationError(JanitorError):
    """Listing a resource category in a region failed."""

    def __init__(self, category: str, region: str, cause: Optional[BaseException] = None) -> None:
        self.category = category
        self.region = region
        self.cause = cause
        super().__init__(f"failed to list {category} in {region}: {cause}")


class DeleteError(JanitorError):
    """Deleting a single resource failed."""

    def __init__(self, arn: str, error_code: str, message: str) -> None:
        self.arn = arn
        self.error_code = error_code
        self.message = message
        super().__init__(f"{arn}: delete failed: {error_code}: {message}")


class ReferenceRevokeError(JanitorError):
    """Revoking a cross-reference before a delete failed."""

    def __init__(self, arn: str, dependent_id: str, direction: str, message: str) -> None:
        self.arn = arn
        self.dependent_id = dependent_id
        self.direction = direction
        super().__init__(f"{arn}: failed to revoke {direction} reference from {dependent_id}: {message}")


class OrchestrationError(JanitorError):
    """A sweeper failed fatally; the run is aborted without saving."""


class SweepTimeoutError(OrchestrationError):
    """Waiting for provider-confirmed deletion exceeded its bound."""


class PersistenceError(JanitorError):
    """Loading or saving the ledger failed."""
