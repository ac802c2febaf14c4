"""Sweep run model.

Per-category results and the overall outcome of one janitor run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from .sweep_record import SweepRecord, SweepStatus


class RunStatus(Enum):
    """Run status.

    State transitions:
        running -> completed (every sweep listed and every delete succeeded)
        running -> partial (some listing or delete failed)
        running -> failed (fatal error, ledger not saved)
        running -> dry-run (nothing deleted, ledger not saved)
    """

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    DRY_RUN = "dry-run"


@dataclass
class SweepResult:
    """Outcome of one sweeper in one region.

    Attributes:
        category: Sweeper category name
        region: AWS region
        listed_count: Resources enumerated
        protected_count: Default/system resources skipped before marking
        eligible_count: Resources whose TTL expired
        records: One record per resource in the deletion batch
        error: Enumeration error message, None when listing succeeded
    """

    category: str
    region: str
    listed_count: int = 0
    protected_count: int = 0
    eligible_count: int = 0
    records: List[SweepRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def deleted_count(self) -> int:
        return sum(1 for r in self.records if r.status == SweepStatus.DELETED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == SweepStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.records if r.status == SweepStatus.SKIPPED)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.failed_count == 0


@dataclass
class SweepRun:
    """One janitor run across regions and categories.

    Attributes:
        run_id: Unique identifier for the run
        account_id: Account being swept
        regions: Regions in sweep order
        ttl: TTL used for eligibility
        dry_run: True if no deletions were issued
        started_at: When the run started (UTC)
        status: Current run status
        results: Per region/category results in sweep order
        completed_at: When the run finished (optional)
        ledger_size_before: Ledger entries after load (optional)
        ledger_size_after: Ledger entries after reconcile (optional)
        reconciled_count: Entries dropped by reconcile (optional)
    """

    run_id: str
    account_id: str
    regions: List[str]
    ttl: timedelta
    dry_run: bool
    started_at: datetime
    status: RunStatus = RunStatus.RUNNING
    results: List[SweepResult] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    ledger_size_before: Optional[int] = None
    ledger_size_after: Optional[int] = None
    reconciled_count: Optional[int] = None

    @property
    def records(self) -> List[SweepRecord]:
        return [record for result in self.results for record in result.records]

    @property
    def failed_results(self) -> List[SweepResult]:
        return [result for result in self.results if result.error is not None]

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def finish(self, completed_at: datetime) -> None:
        """Set the terminal status from the collected results."""
        self.completed_at = completed_at
        if self.dry_run:
            self.status = RunStatus.DRY_RUN
        elif all(result.succeeded for result in self.results):
            self.status = RunStatus.COMPLETED
        else:
            self.status = RunStatus.PARTIAL
