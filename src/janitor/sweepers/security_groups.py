"""Security group sweeper.

Security groups reference each other through group-pair rules. Before a group
is deleted every rule pointing into it, and every rule it declares pointing
at another group, is revoked; see ``src.janitor.references``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Sequence, Set

from botocore.exceptions import BotoCoreError, ClientError

from src.janitor.errors import ReferenceRevokeError
from src.janitor.references import (
    INGRESS,
    Reference,
    collect_references,
    is_default_security_group,
    plan_revocations,
    revocations_for,
)

from .base import ResourceSweeper, SweptResource


class SecurityGroupSweeper(ResourceSweeper):
    """Sweeper for non-default security groups."""

    category = "security-group"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._plan: List[Reference] = []
        self._revoked: Set[Reference] = set()

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_security_groups")
        for page in paginator.paginate():
            yield from page.get("SecurityGroups", [])

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        return is_default_security_group(raw)

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        group_id = raw["GroupId"]
        return SweptResource(identity=self._identity(group_id), resource_id=group_id, raw=raw)

    def prepare(self, client: Any, listed: Sequence[Dict[str, Any]], batch: Sequence[SweptResource]) -> None:
        """Plan revocation of every reference touching a doomed group.

        References are collected from every listed group, default groups
        included, since their rules can point at a doomed group too.
        """
        references = collect_references(listed, self.account_id)
        self._plan = plan_revocations(references, [resource.resource_id for resource in batch])
        self._revoked = set()
        self.logger.debug(f"{self.region}: {len(self._plan)} security group references to revoke")

    def delete(self, client: Any, resource: SweptResource) -> None:
        for ref in revocations_for(self._plan, resource.resource_id):
            if ref in self._revoked:
                continue
            self._revoked.add(ref)
            self._revoke(client, resource, ref)
        client.delete_security_group(GroupId=resource.resource_id)

    def _revoke(self, client: Any, resource: SweptResource, ref: Reference) -> None:
        """Revoke one reference. Failure is logged and never blocks the delete."""
        self.logger.info(
            f"{resource.identity}: revoking {ref.direction} reference from {ref.dependent_id} to {ref.owner_id}"
        )
        if ref.direction == INGRESS:
            revoke = client.revoke_security_group_ingress
        else:
            revoke = client.revoke_security_group_egress

        try:
            revoke(GroupId=ref.dependent_id, IpPermissions=[ref.to_ip_permission()])
        except (ClientError, BotoCoreError) as e:
            if isinstance(e, ClientError):
                message = e.response.get("Error", {}).get("Code", "Unknown")
            else:
                message = str(e)
            error = ReferenceRevokeError(resource.identity.arn, ref.dependent_id, ref.direction, message)
            self.logger.warning(str(error))
