"""Security group cross-reference resolution.

Security groups in the same account can reference each other through
ingress/egress rules (``UserIdGroupPairs``). A group that is still referenced
cannot be deleted, so before deleting a group every rule pointing into it and
every rule it declares pointing at other groups is revoked.

Everything here is pure: it maps descriptors to a revocation plan and never
talks to AWS.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Tuple

INGRESS = "ingress"
EGRESS = "egress"

_PERMISSION_KEYS = {INGRESS: "IpPermissions", EGRESS: "IpPermissionsEgress"}

# Fields of an IpPermission that identify the rule, excluding the peer lists
_RULE_FIELDS = ("IpProtocol", "FromPort", "ToPort")
_PAIR_FIELDS = ("GroupId", "UserId", "VpcId", "VpcPeeringConnectionId")


@dataclass(frozen=True)
class Reference:
    """Directed edge: ``dependent_id`` holds a rule that names ``owner_id``.

    Attributes:
        owner_id: Group being referenced
        dependent_id: Group declaring the rule
        direction: ``ingress`` or ``egress`` (which rule list of the dependent)
        permission: IpPermission narrowed to the single group pair forming
            this edge, exactly what must be revoked on the dependent
    """

    owner_id: str
    dependent_id: str
    direction: str
    permission: Tuple[Tuple[str, Any], ...]

    def to_ip_permission(self) -> Dict[str, Any]:
        """IpPermission dict suitable for RevokeSecurityGroup{Ingress,Egress}."""
        permission = {key: value for key, value in self.permission if key != "UserIdGroupPairs"}
        pairs = dict(self.permission).get("UserIdGroupPairs", ())
        permission["UserIdGroupPairs"] = [dict(pair) for pair in pairs]
        return permission

    def touches(self, group_id: str) -> bool:
        return group_id in (self.owner_id, self.dependent_id)


def is_default_security_group(group: Mapping[str, Any]) -> bool:
    """Whether a security group is the VPC's default group.

    Every VPC has exactly one default group, always named ``default``; AWS
    rejects user-created groups with that name, so the name is a reliable
    classifier. The default group cannot be deleted and is never swept.
    """
    return group.get("GroupName") == "default"


def _narrow(permission: Mapping[str, Any], pair: Mapping[str, Any]) -> Tuple[Tuple[str, Any], ...]:
    fields = [(key, permission[key]) for key in _RULE_FIELDS if key in permission]
    narrowed_pair = tuple(sorted((key, value) for key, value in pair.items() if key in _PAIR_FIELDS))
    fields.append(("UserIdGroupPairs", (narrowed_pair,)))
    return tuple(fields)


def collect_references(groups: Iterable[Mapping[str, Any]], account_id: str) -> List[Reference]:
    """Collect same-account group-to-group references from group descriptors.

    Self references are not removable dependencies and are skipped. Pairs
    naming another account are skipped: rules held outside this account are
    never mutated. Pairs without a ``UserId`` are taken as same-account.

    Args:
        groups: DescribeSecurityGroups ``SecurityGroups`` entries
        account_id: Account performing the sweep

    Returns:
        References in discovery order
    """
    references: List[Reference] = []
    for group in groups:
        dependent_id = group["GroupId"]
        for direction, key in _PERMISSION_KEYS.items():
            for permission in group.get(key) or []:
                for pair in permission.get("UserIdGroupPairs") or []:
                    owner_id = pair.get("GroupId")
                    if not owner_id or owner_id == dependent_id:
                        continue
                    if pair.get("UserId", account_id) != account_id:
                        continue
                    references.append(
                        Reference(
                            owner_id=owner_id,
                            dependent_id=dependent_id,
                            direction=direction,
                            permission=_narrow(permission, pair),
                        )
                    )
    return references


@dataclass
class ReferenceIndex:
    """Reverse indices over references.

    Attributes:
        inbound: owner group ID -> references pointing into it
        outbound: dependent group ID -> references it declares
    """

    inbound: Dict[str, List[Reference]]
    outbound: Dict[str, List[Reference]]

    @classmethod
    def build(cls, references: Iterable[Reference]) -> "ReferenceIndex":
        inbound: Dict[str, List[Reference]] = defaultdict(list)
        outbound: Dict[str, List[Reference]] = defaultdict(list)
        for ref in references:
            inbound[ref.owner_id].append(ref)
            outbound[ref.dependent_id].append(ref)
        return cls(inbound=dict(inbound), outbound=dict(outbound))

    def touching(self, group_id: str) -> List[Reference]:
        """Inbound then outbound references of a group."""
        return list(self.inbound.get(group_id, [])) + list(self.outbound.get(group_id, []))


def plan_revocations(references: Iterable[Reference], deletion_ids: Iterable[str]) -> List[Reference]:
    """Build the revocation plan for a deletion set.

    Every edge touching a group selected for deletion is revoked, in both
    directions. An edge between two doomed groups appears once.

    Args:
        references: All references discovered this run
        deletion_ids: Group IDs selected for deletion

    Returns:
        References to revoke, grouped by deletion order, de-duplicated
    """
    index = ReferenceIndex.build(references)
    plan: List[Reference] = []
    seen = set()
    for group_id in deletion_ids:
        for ref in index.touching(group_id):
            if ref not in seen:
                seen.add(ref)
                plan.append(ref)
    return plan


def revocations_for(plan: Iterable[Reference], group_id: str) -> List[Reference]:
    """Subset of a plan touching one group."""
    return [ref for ref in plan if ref.touches(group_id)]
