"""Integration tests for a full janitor pass against mocked AWS clients."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.cli.config import Config
from src.janitor import run_janitor
from src.janitor.errors import OrchestrationError
from src.janitor.ledger import format_timestamp, parse_timestamp, utcnow
from src.janitor.sweepers import ResourceSweeper
from src.models.sweep_run import RunStatus
from tests.fixtures.aws import ACCOUNT_ID, REGION, client_error, mock_client

VOLUME_ARN = f"arn:aws:ec2:{REGION}:{ACCOUNT_ID}:volume/vol-old"
NEW_VOLUME_ARN = f"arn:aws:ec2:{REGION}:{ACCOUNT_ID}:volume/vol-new"
GONE_ARN = f"arn:aws:ec2:{REGION}:{ACCOUNT_ID}:instance/i-gone"
SG_ARN = f"arn:aws:ec2:{REGION}:{ACCOUNT_ID}:security-group/sg-old"

LIST_OPERATIONS = (
    "describe_auto_scaling_groups",
    "describe_launch_configurations",
    "describe_instances",
    "describe_subnets",
    "describe_security_groups",
    "describe_internet_gateways",
    "describe_route_tables",
    "describe_vpcs",
    "describe_dhcp_options",
    "describe_volumes",
)


def account_client(**pages) -> MagicMock:
    """Mock client serving the given pages and empty listings for everything else."""
    all_pages = {operation: [{}] for operation in LIST_OPERATIONS}
    all_pages.update(pages)
    return mock_client(all_pages)


@pytest.fixture
def ledger_file(tmp_path: Path) -> Path:
    two_days_ago = format_timestamp(utcnow() - timedelta(days=2))
    path = tmp_path / "state" / "ledger.json"
    path.parent.mkdir()
    path.write_text(json.dumps({VOLUME_ARN: two_days_ago, GONE_ARN: two_days_ago, SG_ARN: two_days_ago}))
    return path


@pytest.fixture
def config(ledger_file: Path, tmp_path: Path) -> Config:
    return Config(regions=[REGION], ttl=timedelta(hours=24), path=str(ledger_file), audit_dir=str(tmp_path / "runs"))


class TestRunJanitor:
    """End-to-end janitor runs with a local ledger."""

    def test_sweeps_and_saves(self, config: Config, ledger_file: Path) -> None:
        """Test expired resources are deleted, new ones marked, vanished ones dropped."""
        client = account_client(
            describe_volumes=[{"Volumes": [{"VolumeId": "vol-old"}, {"VolumeId": "vol-new"}]}],
            describe_security_groups=[
                {
                    "SecurityGroups": [
                        {"GroupId": "sg-default", "GroupName": "default", "IpPermissions": []},
                        {"GroupId": "sg-old", "GroupName": "e2e", "IpPermissions": []},
                    ]
                }
            ],
        )

        with patch.object(ResourceSweeper, "_create_client", return_value=client):
            run = run_janitor(config, session=MagicMock(), account_id=ACCOUNT_ID)

        client.delete_volume.assert_called_once_with(VolumeId="vol-old")
        client.delete_security_group.assert_called_once_with(GroupId="sg-old")
        assert run.status == RunStatus.COMPLETED
        assert [r.category for r in run.results][:2] == ["auto-scaling-group", "launch-configuration"]

        saved = json.loads(ledger_file.read_text())
        assert set(saved) == {VOLUME_ARN, NEW_VOLUME_ARN, SG_ARN}
        assert parse_timestamp(saved[NEW_VOLUME_ARN]) > utcnow() - timedelta(minutes=5)

        audit_files = list(Path(config.audit_dir).glob("*/*/run-*.yaml"))
        assert len(audit_files) == 1

    def test_enumeration_failure_keeps_entries(self, config: Config, ledger_file: Path) -> None:
        """Test a failed listing keeps that category's entries and still saves."""
        client = account_client(describe_volumes=[{"Volumes": []}])
        client.paginators["describe_instances"].paginate.side_effect = client_error(
            "UnauthorizedOperation", "DescribeInstances"
        )

        with patch.object(ResourceSweeper, "_create_client", return_value=client):
            run = run_janitor(config, session=MagicMock(), account_id=ACCOUNT_ID)

        assert run.status == RunStatus.PARTIAL
        saved = json.loads(ledger_file.read_text())
        assert GONE_ARN in saved
        assert VOLUME_ARN not in saved

    def test_fatal_error_leaves_ledger_untouched(self, config: Config, ledger_file: Path) -> None:
        """Test an aborted run never saves the ledger."""
        before = ledger_file.read_text()
        client = account_client(describe_volumes=[{"Volumes": [{"VolumeId": "vol-old"}]}])
        client.delete_volume.side_effect = RuntimeError("unexpected")

        with patch.object(ResourceSweeper, "_create_client", return_value=client):
            with pytest.raises(OrchestrationError):
                run_janitor(config, session=MagicMock(), account_id=ACCOUNT_ID)

        assert ledger_file.read_text() == before

    def test_dry_run_changes_nothing(self, config: Config, ledger_file: Path) -> None:
        """Test a dry run deletes nothing and leaves the ledger unchanged."""
        before = ledger_file.read_text()
        client = account_client(describe_volumes=[{"Volumes": [{"VolumeId": "vol-old"}]}])

        with patch.object(ResourceSweeper, "_create_client", return_value=client):
            run = run_janitor(config, session=MagicMock(), account_id=ACCOUNT_ID, dry_run=True)

        client.delete_volume.assert_not_called()
        assert run.status == RunStatus.DRY_RUN
        assert [r.resource_id for r in run.records] == ["vol-old"]
        assert ledger_file.read_text() == before
