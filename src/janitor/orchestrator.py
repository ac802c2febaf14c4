"""Sweep orchestrator.

Drives every sweeper over every region, strictly sequentially and in a fixed
dependency order, then reconciles the ledger. The ledger is passed into each
sweep explicitly; it is not safe for concurrent use.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Type

import boto3

from src.aws.client import DEFAULT_MAX_ATTEMPTS
from src.janitor.errors import EnumerationError, OrchestrationError
from src.janitor.ledger import Ledger
from src.janitor.sweepers import (
    AutoScalingGroupSweeper,
    DhcpOptionsSweeper,
    InstanceSweeper,
    InternetGatewaySweeper,
    LaunchConfigurationSweeper,
    ResourceSweeper,
    RouteTableSweeper,
    SecurityGroupSweeper,
    SubnetSweeper,
    VolumeSweeper,
    VpcSweeper,
)
from src.janitor.sweepers.base import DEFAULT_WAIT_TIMEOUT
from src.models.identity import parse_arn
from src.models.sweep_run import RunStatus, SweepResult, SweepRun

logger = logging.getLogger(__name__)

# Resource categories in dependency order: anything that references or pins
# a resource is swept before the resource itself.
SWEEPER_TYPES: Tuple[Type[ResourceSweeper], ...] = (
    AutoScalingGroupSweeper,
    LaunchConfigurationSweeper,
    InstanceSweeper,
    SubnetSweeper,
    SecurityGroupSweeper,
    InternetGatewaySweeper,
    RouteTableSweeper,
    VpcSweeper,
    DhcpOptionsSweeper,
    VolumeSweeper,
)


class SweepOrchestrator:
    """Runs the sweepers for one account across regions.

    Attributes:
        session: boto3 session
        account_id: Account being swept
        ledger: Ledger loaded for this run
        dry_run: Mark only, never delete, never reconcile
        sweeper_types: Sweeper classes in sweep order
    """

    def __init__(
        self,
        session: boto3.Session,
        account_id: str,
        ledger: Ledger,
        dry_run: bool = False,
        sweeper_types: Sequence[Type[ResourceSweeper]] = SWEEPER_TYPES,
        wait_timeout: int = DEFAULT_WAIT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.session = session
        self.account_id = account_id
        self.ledger = ledger
        self.dry_run = dry_run
        self.sweeper_types = tuple(sweeper_types)
        self.wait_timeout = wait_timeout
        self.max_attempts = max_attempts
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self, regions: Sequence[str]) -> SweepRun:
        """Sweep every region with every sweeper, then reconcile the ledger.

        A category whose listing fails is logged and skipped; its ledger
        entries are kept as they are. Any other sweeper failure aborts the
        run before the ledger is reconciled.

        Args:
            regions: Regions in sweep order

        Returns:
            SweepRun with per region/category results

        Raises:
            OrchestrationError: If a sweeper failed fatally
        """
        run = SweepRun(
            run_id=f"run_{uuid.uuid4()}",
            account_id=self.account_id,
            regions=list(regions),
            ttl=self.ledger.ttl,
            dry_run=self.dry_run,
            started_at=self._clock(),
            ledger_size_before=len(self.ledger),
        )

        failed: List[ResourceSweeper] = []
        for region in regions:
            for sweeper_type in self.sweeper_types:
                sweeper = sweeper_type(
                    self.session,
                    self.account_id,
                    region,
                    dry_run=self.dry_run,
                    wait_timeout=self.wait_timeout,
                    max_attempts=self.max_attempts,
                )
                run.results.append(self._sweep(run, sweeper))
                if run.results[-1].error is not None:
                    failed.append(sweeper)

        if self.dry_run:
            logger.info("Dry run: ledger not reconciled")
        else:
            dropped = self.ledger.reconcile(keep=lambda arn: self._listing_failed(arn, failed))
            run.reconciled_count = len(dropped)
            run.ledger_size_after = len(self.ledger)

        run.finish(self._clock())
        return run

    def _sweep(self, run: SweepRun, sweeper: ResourceSweeper) -> SweepResult:
        try:
            return sweeper.sweep(self.ledger)
        except EnumerationError as e:
            logger.error(f"error sweeping {sweeper.category}: {e}")
            return SweepResult(category=sweeper.category, region=sweeper.region, error=str(e))
        except OrchestrationError:
            self._fail(run)
            raise
        except Exception as e:
            self._fail(run)
            raise OrchestrationError(f"error sweeping {sweeper.category} in {sweeper.region}: {e}") from e

    def _fail(self, run: SweepRun) -> None:
        run.status = RunStatus.FAILED
        run.completed_at = self._clock()

    @staticmethod
    def _listing_failed(arn: str, failed: Sequence[ResourceSweeper]) -> bool:
        """Whether an entry belongs to a region and category whose listing failed this run."""
        try:
            identity = parse_arn(arn)
        except ValueError:
            return False
        return any(sweeper.region == identity.region and sweeper.owns(identity) for sweeper in failed)
