"""Resource identity model.

Every swept resource is keyed by its ARN. ARNs are globally unique across
regions and accounts, which makes them usable as opaque ledger keys.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_RESOURCE_SPLIT = re.compile(r"[:/]")


@dataclass(frozen=True)
class ResourceIdentity:
    """Parsed AWS ARN identifying one physical resource.

    Attributes:
        arn: Full ARN string (the ledger key)
        partition: ARN partition (aws, aws-cn, aws-us-gov)
        service: Service namespace (ec2, autoscaling, ...)
        region: Region the resource lives in
        account: Owning account ID
        resource_type: Resource type prefix (instance, vpc, autoScalingGroup, ...)
        resource: Remainder of the resource part after the type
    """

    arn: str
    partition: str
    service: str
    region: str
    account: str
    resource_type: str
    resource: str

    @classmethod
    def for_resource(
        cls,
        service: str,
        region: str,
        account: str,
        resource_type: str,
        resource_id: str,
        partition: str = "aws",
    ) -> "ResourceIdentity":
        """Build the identity for a resource that has no provider-issued ARN."""
        return cls.from_arn(f"arn:{partition}:{service}:{region}:{account}:{resource_type}/{resource_id}")

    @classmethod
    def from_arn(cls, arn: str) -> "ResourceIdentity":
        """Parse an ARN string.

        Raises:
            ValueError: If the string is not an AWS ARN
        """
        return parse_arn(arn)

    def __str__(self) -> str:
        return self.arn


def parse_arn(arn: str) -> ResourceIdentity:
    """Parse an AWS ARN into its components.

    Supports both ``type/id`` and ``type:id`` resource forms, e.g.
    ``arn:aws:ec2:us-west-2:123456789012:vpc/vpc-1`` and
    ``arn:aws:autoscaling:us-west-2:123456789012:autoScalingGroup:uuid:autoScalingGroupName/name``.

    Raises:
        ValueError: If the string is not an AWS ARN
    """
    pieces = arn.split(":", 5)
    if len(pieces) != 6 or pieces[0] != "arn" or not pieces[1].startswith("aws"):
        raise ValueError(f"Invalid AWS ARN: {arn}")

    resource_part = pieces[5]
    res = _RESOURCE_SPLIT.split(resource_part, maxsplit=1)
    if len(res) == 1:
        resource_type, resource = "", res[0]
    else:
        resource_type, resource = res[0], res[1]

    return ResourceIdentity(
        arn=arn,
        partition=pieces[1],
        service=pieces[2],
        region=pieces[3],
        account=pieces[4],
        resource_type=resource_type,
        resource=resource,
    )
