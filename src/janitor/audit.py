"""Audit storage for janitor runs.

Stores one YAML log per run for troubleshooting what was deleted and why.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from src.janitor.ledger import format_timestamp
from src.models.sweep_run import SweepRun


class AuditStorage:
    """Run log storage and retrieval.

    Storage structure:
        <storage_dir>/
            2026/
                10/
                    run-run_123.yaml

    Attributes:
        storage_dir: Base directory for run logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for run logs (default: ~/.aws-janitor/runs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".aws-janitor" / "runs")

        self.storage_dir = Path(storage_dir).expanduser()
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_run(self, run: SweepRun) -> Path:
        """Write the run log. Overwrites an existing log with the same run ID.

        Returns:
            Path of the written log
        """
        year_month_dir = self.storage_dir / str(run.started_at.year) / f"{run.started_at.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "janitor_run",
                "created_at": format_timestamp(datetime.now(timezone.utc)),
            },
            "run": {
                "run_id": run.run_id,
                "account_id": run.account_id,
                "regions": run.regions,
                "ttl_seconds": int(run.ttl.total_seconds()),
                "dry_run": run.dry_run,
                "status": run.status.value,
                "started_at": format_timestamp(run.started_at),
                "completed_at": format_timestamp(run.completed_at) if run.completed_at else None,
                "duration_seconds": run.duration_seconds,
                "ledger_size_before": run.ledger_size_before,
                "ledger_size_after": run.ledger_size_after,
                "reconciled_count": run.reconciled_count,
            },
            "sweeps": [
                {
                    "category": result.category,
                    "region": result.region,
                    "listed": result.listed_count,
                    "protected": result.protected_count,
                    "eligible": result.eligible_count,
                    "deleted": result.deleted_count,
                    "failed": result.failed_count,
                    "error": result.error,
                }
                for result in run.results
            ],
            "records": [record.to_dict() for record in run.records],
        }

        audit_file = year_month_dir / f"run-{run.run_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)
        return audit_file

    def get_run(self, run_id: str) -> Optional[dict]:
        """Retrieve a run log by ID.

        Returns:
            Run log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/run-{run_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)
        return None
