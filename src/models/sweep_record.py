"""Sweep record model.

Outcome of one resource selected for deletion during a sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SweepStatus(Enum):
    """Individual resource deletion status."""

    DELETED = "deleted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SweepRecord:
    """Sweep record entity.

    Validation rules:
        - status=failed: requires error_code
        - status=deleted: no error_code
        - arn must start with "arn:aws"

    Attributes:
        arn: Resource ARN (the ledger identity)
        resource_id: Provider-local identifier (instance ID, group name, ...)
        category: Sweeper category name
        region: AWS region
        status: Outcome (deleted, failed, skipped)
        timestamp: When the deletion was attempted (UTC)
        error_code: AWS error code if failed (optional)
        error_message: Human-readable error if failed (optional)
    """

    arn: str
    resource_id: str
    category: str
    region: str
    status: SweepStatus
    timestamp: datetime
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def validate(self) -> bool:
        """Validate record invariants.

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == SweepStatus.FAILED and not self.error_code:
            raise ValueError("Failed status requires error_code")
        if self.status == SweepStatus.DELETED and self.error_code:
            raise ValueError("Deleted status cannot have an error")
        if not self.arn.startswith("arn:aws"):
            raise ValueError("Invalid ARN format")
        return True

    def to_dict(self) -> dict:
        return {
            "arn": self.arn,
            "resource_id": self.resource_id,
            "category": self.category,
            "region": self.region,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
