"""Tests for SweepOrchestrator."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterator, List
from unittest.mock import MagicMock, patch

import pytest

from src.janitor.errors import OrchestrationError, SweepTimeoutError
from src.janitor.ledger import Ledger
from src.janitor.orchestrator import SWEEPER_TYPES, SweepOrchestrator
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
    SweptResource,
    VolumeSweeper,
    VpcSweeper,
)
from src.models.sweep_run import RunStatus
from tests.fixtures.aws import ACCOUNT_ID, T0, FakeClock, client_error

# Inventory served to the fake sweepers: (region, category) -> resource IDs
INVENTORY: Dict[tuple, List[str]] = {}
CALLS: List[tuple] = []
FAILURES: Dict[tuple, Exception] = {}


class FakeSweeper(ResourceSweeper):
    """Sweeper serving IDs from INVENTORY and recording sweep order."""

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        CALLS.append((self.region, self.category))
        failure = FAILURES.get((self.region, self.category))
        if failure is not None:
            raise failure
        for resource_id in INVENTORY.get((self.region, self.category), []):
            yield {"Id": resource_id}

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        return SweptResource(identity=self._identity(raw["Id"]), resource_id=raw["Id"], raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        CALLS.append(("delete", resource.identity.arn))


class AlphaSweeper(FakeSweeper):
    category = "alpha"


class BetaSweeper(FakeSweeper):
    category = "beta"


def arn(region: str, category: str, resource_id: str) -> str:
    return f"arn:aws:ec2:{region}:{ACCOUNT_ID}:{category}/{resource_id}"


@pytest.fixture(autouse=True)
def reset_fakes():
    INVENTORY.clear()
    CALLS.clear()
    FAILURES.clear()
    with patch.object(ResourceSweeper, "_create_client", return_value=MagicMock()):
        yield


def orchestrator(ledger: Ledger, **kwargs) -> SweepOrchestrator:
    return SweepOrchestrator(
        MagicMock(), ACCOUNT_ID, ledger, sweeper_types=(AlphaSweeper, BetaSweeper), clock=FakeClock(), **kwargs
    )


class TestSweepOrder:
    """Tests for the fixed sweep order."""

    def test_default_order(self) -> None:
        """Test categories run in dependency order."""
        assert SWEEPER_TYPES == (
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

    def test_regions_then_categories_sequentially(self) -> None:
        """Test each region runs every category in order before the next region."""
        ledger = Ledger(timedelta(hours=24), clock=FakeClock())

        orchestrator(ledger).run(["us-west-2", "us-east-1"])

        assert CALLS == [
            ("us-west-2", "alpha"),
            ("us-west-2", "beta"),
            ("us-east-1", "alpha"),
            ("us-east-1", "beta"),
        ]


class TestRun:
    """Tests for SweepOrchestrator.run."""

    def test_deletes_expired_and_reconciles(self) -> None:
        """Test a clean run deletes expired resources and drops vanished entries."""
        old = T0 - timedelta(days=2)
        gone = arn("us-west-2", "alpha", "a-gone")
        ledger = Ledger(
            timedelta(hours=24),
            first_seen={arn("us-west-2", "alpha", "a-1"): old, gone: old},
            clock=FakeClock(),
        )
        INVENTORY[("us-west-2", "alpha")] = ["a-1", "a-new"]

        run = orchestrator(ledger).run(["us-west-2"])

        assert ("delete", arn("us-west-2", "alpha", "a-1")) in CALLS
        assert gone not in ledger
        assert ledger.reconciled
        assert run.status == RunStatus.COMPLETED
        assert run.reconciled_count == 1
        assert run.ledger_size_before == 2
        assert run.ledger_size_after == 2

    def test_enumeration_failure_continues_and_keeps_scope(self) -> None:
        """Test a failed listing is recorded, others continue, its entries survive reconcile."""
        old = T0 - timedelta(days=2)
        alpha_entry = arn("us-west-2", "alpha", "a-1")
        beta_entry = arn("us-west-2", "beta", "b-gone")
        ledger = Ledger(timedelta(hours=24), first_seen={alpha_entry: old, beta_entry: old}, clock=FakeClock())
        FAILURES[("us-west-2", "alpha")] = client_error("UnauthorizedOperation", "DescribeAlpha")

        run = orchestrator(ledger).run(["us-west-2"])

        assert ("us-west-2", "beta") in CALLS
        assert run.status == RunStatus.PARTIAL
        assert [r.category for r in run.failed_results] == ["alpha"]
        assert alpha_entry in ledger
        assert beta_entry not in ledger

    def test_entries_of_regions_outside_run_dropped(self) -> None:
        """Test reconcile drops unmarked entries of regions not part of the run."""
        elsewhere = arn("eu-west-1", "alpha", "a-1")
        ledger = Ledger(timedelta(hours=24), first_seen={elsewhere: T0}, clock=FakeClock())

        run = orchestrator(ledger).run(["us-west-2"])

        assert elsewhere not in ledger
        assert run.reconciled_count == 1

    def test_failed_listing_keeps_only_its_own_region(self) -> None:
        """Test a failed listing in one region does not protect the same category elsewhere."""
        failing = arn("us-west-2", "alpha", "a-1")
        healthy = arn("us-east-1", "alpha", "a-2")
        ledger = Ledger(timedelta(hours=24), first_seen={failing: T0, healthy: T0}, clock=FakeClock())
        FAILURES[("us-west-2", "alpha")] = client_error("UnauthorizedOperation", "DescribeAlpha")

        orchestrator(ledger).run(["us-west-2", "us-east-1"])

        assert failing in ledger
        assert healthy not in ledger

    def test_unparseable_entries_dropped(self) -> None:
        """Test entries that are not ARNs are removed on reconcile."""
        ledger = Ledger(timedelta(hours=24), first_seen={"not-an-arn": T0}, clock=FakeClock())

        orchestrator(ledger).run(["us-west-2"])

        assert "not-an-arn" not in ledger

    def test_unexpected_error_is_fatal(self) -> None:
        """Test a non-enumeration failure aborts without reconciling."""
        ledger = Ledger(timedelta(0), first_seen={arn("us-west-2", "beta", "b-1"): T0}, clock=FakeClock())
        INVENTORY[("us-west-2", "alpha")] = ["a-1"]

        with patch.object(AlphaSweeper, "delete", side_effect=RuntimeError("boom")):
            with pytest.raises(OrchestrationError):
                orchestrator(ledger).run(["us-west-2"])

        assert ("us-west-2", "beta") not in CALLS
        assert not ledger.reconciled

    def test_timeout_propagates(self) -> None:
        """Test SweepTimeoutError surfaces unchanged."""
        ledger = Ledger(timedelta(0), clock=FakeClock())
        INVENTORY[("us-west-2", "alpha")] = ["a-1"]

        with patch.object(AlphaSweeper, "after_delete", side_effect=SweepTimeoutError("still there")):
            with pytest.raises(SweepTimeoutError):
                orchestrator(ledger).run(["us-west-2"])

        assert not ledger.reconciled

    def test_dry_run_marks_only(self) -> None:
        """Test dry-run never deletes or reconciles."""
        gone = arn("us-west-2", "alpha", "a-gone")
        ledger = Ledger(timedelta(0), first_seen={gone: T0}, clock=FakeClock())
        INVENTORY[("us-west-2", "alpha")] = ["a-1"]

        run = orchestrator(ledger, dry_run=True).run(["us-west-2"])

        assert not any(call[0] == "delete" for call in CALLS)
        assert not ledger.reconciled
        assert gone in ledger
        assert run.status == RunStatus.DRY_RUN
        assert run.records[0].resource_id == "a-1"
