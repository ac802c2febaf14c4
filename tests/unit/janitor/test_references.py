"""Tests for security group reference resolution."""

from __future__ import annotations

from typing import Any, Dict, List

from src.janitor.references import (
    EGRESS,
    INGRESS,
    ReferenceIndex,
    collect_references,
    is_default_security_group,
    plan_revocations,
    revocations_for,
)
from tests.fixtures.aws import ACCOUNT_ID, OTHER_ACCOUNT_ID


def group(group_id: str, ingress: List[Dict[str, Any]] = None, egress: List[Dict[str, Any]] = None, name: str = None):
    return {
        "GroupId": group_id,
        "GroupName": name or f"name-{group_id}",
        "IpPermissions": ingress or [],
        "IpPermissionsEgress": egress or [],
    }


def rule(*group_ids: str, user_id: str = ACCOUNT_ID, port: int = 443, cidrs: List[str] = None) -> Dict[str, Any]:
    return {
        "IpProtocol": "tcp",
        "FromPort": port,
        "ToPort": port,
        "IpRanges": [{"CidrIp": cidr} for cidr in (cidrs or [])],
        "UserIdGroupPairs": [{"GroupId": gid, "UserId": user_id} for gid in group_ids],
    }


class TestCollectReferences:
    """Tests for collect_references."""

    def test_ingress_and_egress_edges(self) -> None:
        """Test rules produce edges owner <- dependent in both directions."""
        groups = [group("sg-1", ingress=[rule("sg-2")], egress=[rule("sg-3")])]

        refs = collect_references(groups, ACCOUNT_ID)

        assert [(r.owner_id, r.dependent_id, r.direction) for r in refs] == [
            ("sg-2", "sg-1", INGRESS),
            ("sg-3", "sg-1", EGRESS),
        ]

    def test_self_references_discarded(self) -> None:
        """Test a group referencing itself yields no edge."""
        groups = [group("sg-1", ingress=[rule("sg-1")], egress=[rule("sg-1")])]

        assert collect_references(groups, ACCOUNT_ID) == []

    def test_cross_account_references_discarded(self) -> None:
        """Test pairs naming another account yield no edge."""
        groups = [group("sg-1", ingress=[rule("sg-9", user_id=OTHER_ACCOUNT_ID)])]

        assert collect_references(groups, ACCOUNT_ID) == []

    def test_pair_without_user_id_is_same_account(self) -> None:
        """Test a pair lacking UserId is treated as same-account."""
        permission = {"IpProtocol": "-1", "UserIdGroupPairs": [{"GroupId": "sg-2"}]}
        groups = [group("sg-1", ingress=[permission])]

        refs = collect_references(groups, ACCOUNT_ID)

        assert len(refs) == 1
        assert refs[0].owner_id == "sg-2"

    def test_permission_narrowed_to_single_pair(self) -> None:
        """Test the revocable permission names only the edge's group pair."""
        groups = [group("sg-1", ingress=[rule("sg-2", "sg-3", port=22, cidrs=["10.0.0.0/8"])])]

        refs = collect_references(groups, ACCOUNT_ID)

        assert refs[0].to_ip_permission() == {
            "IpProtocol": "tcp",
            "FromPort": 22,
            "ToPort": 22,
            "UserIdGroupPairs": [{"GroupId": "sg-2", "UserId": ACCOUNT_ID}],
        }
        assert refs[1].to_ip_permission()["UserIdGroupPairs"] == [{"GroupId": "sg-3", "UserId": ACCOUNT_ID}]


class TestPlanRevocations:
    """Tests for plan_revocations."""

    def test_mutual_references_one_side_deleted(self) -> None:
        """Test G1<->G2 with only G1 doomed revokes both edges, touching G2 only for them."""
        groups = [
            group("sg-g1", ingress=[rule("sg-g2")]),
            group("sg-g2", ingress=[rule("sg-g1")]),
        ]
        refs = collect_references(groups, ACCOUNT_ID)

        plan = plan_revocations(refs, ["sg-g1"])

        edges = {(r.dependent_id, r.owner_id) for r in plan}
        assert edges == {("sg-g2", "sg-g1"), ("sg-g1", "sg-g2")}

    def test_edge_between_doomed_groups_planned_once(self) -> None:
        """Test an edge touching two doomed groups appears once."""
        groups = [group("sg-1", ingress=[rule("sg-2")]), group("sg-2")]
        refs = collect_references(groups, ACCOUNT_ID)

        plan = plan_revocations(refs, ["sg-1", "sg-2"])

        assert len(plan) == 1

    def test_edges_not_touching_deletion_set_ignored(self) -> None:
        """Test references between surviving groups are left alone."""
        groups = [
            group("sg-1", ingress=[rule("sg-2")]),
            group("sg-3", ingress=[rule("sg-4")]),
        ]
        refs = collect_references(groups, ACCOUNT_ID)

        plan = plan_revocations(refs, ["sg-1"])

        assert [(r.dependent_id, r.owner_id) for r in plan] == [("sg-1", "sg-2")]

    def test_plan_never_contains_self_or_cross_account(self) -> None:
        """Test self and cross-account references never reach the plan."""
        groups = [
            group("sg-1", ingress=[rule("sg-1"), rule("sg-x", user_id=OTHER_ACCOUNT_ID), rule("sg-2")]),
            group("sg-2"),
        ]
        refs = collect_references(groups, ACCOUNT_ID)

        plan = plan_revocations(refs, ["sg-1", "sg-2"])

        assert all(r.owner_id != r.dependent_id for r in plan)
        assert all(r.owner_id != "sg-x" for r in plan)

    def test_revocations_for_group(self) -> None:
        """Test revocations_for filters a plan to one group."""
        groups = [group("sg-1", ingress=[rule("sg-2")]), group("sg-3", egress=[rule("sg-4")])]
        plan = plan_revocations(collect_references(groups, ACCOUNT_ID), ["sg-1", "sg-4"])

        assert [r.dependent_id for r in revocations_for(plan, "sg-4")] == ["sg-3"]


class TestReferenceIndex:
    """Tests for ReferenceIndex."""

    def test_inbound_and_outbound(self) -> None:
        """Test both reverse indices are populated."""
        groups = [group("sg-1", ingress=[rule("sg-2")]), group("sg-3", ingress=[rule("sg-2")])]
        index = ReferenceIndex.build(collect_references(groups, ACCOUNT_ID))

        assert {r.dependent_id for r in index.inbound["sg-2"]} == {"sg-1", "sg-3"}
        assert [r.owner_id for r in index.outbound["sg-1"]] == ["sg-2"]
        assert index.touching("sg-9") == []


def test_is_default_security_group() -> None:
    """Test default classification by reserved group name."""
    assert is_default_security_group({"GroupId": "sg-1", "GroupName": "default"}) is True
    assert is_default_security_group({"GroupId": "sg-2", "GroupName": "default-web"}) is False
