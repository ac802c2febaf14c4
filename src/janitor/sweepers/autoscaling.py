"""Auto Scaling sweepers.

Auto Scaling groups pin the instances and launch configurations they manage,
so they are swept first and the sweeper blocks until AWS confirms the groups
are gone before later categories run.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterator, Sequence

from botocore.exceptions import WaiterError

from src.janitor.errors import SweepTimeoutError
from src.models.identity import ResourceIdentity

from .base import ResourceSweeper, SweptResource

# Seconds between DescribeAutoScalingGroups polls while waiting
WAIT_POLL_INTERVAL = 15


class AutoScalingGroupSweeper(ResourceSweeper):
    """Sweeper for Auto Scaling groups."""

    category = "auto-scaling-group"
    service_name = "autoscaling"

    NOT_FOUND_CODES = frozenset()

    @property
    def arn_resource_type(self) -> str:
        return "autoScalingGroup"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_auto_scaling_groups")
        for page in paginator.paginate():
            yield from page.get("AutoScalingGroups", [])

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        return SweptResource(
            identity=ResourceIdentity.from_arn(raw["AutoScalingGroupARN"]),
            resource_id=raw["AutoScalingGroupName"],
            raw=raw,
        )

    def delete(self, client: Any, resource: SweptResource) -> None:
        # ForceDelete terminates the group's instances along with it
        client.delete_auto_scaling_group(AutoScalingGroupName=resource.resource_id, ForceDelete=True)

    def after_delete(self, client: Any, deleted: Sequence[SweptResource]) -> None:
        """Block until every deleted group is gone.

        Many dependent resources hang off a group, so waiting here lets the
        rest of the run proceed in a single pass.

        Raises:
            SweepTimeoutError: If the groups are still present after wait_timeout
        """
        if not deleted:
            return

        max_attempts = max(1, math.ceil(self.wait_timeout / WAIT_POLL_INTERVAL))
        waiter = client.get_waiter("group_not_exists")
        for resource in deleted:
            self.logger.warning(f"{resource.identity}: waiting for delete")
            try:
                waiter.wait(
                    AutoScalingGroupNames=[resource.resource_id],
                    WaiterConfig={"Delay": WAIT_POLL_INTERVAL, "MaxAttempts": max_attempts},
                )
            except WaiterError as e:
                if "Max attempts exceeded" in str(e):
                    raise SweepTimeoutError(
                        f"{resource.identity}: still present after {self.wait_timeout}s"
                    ) from e
                self.logger.warning(f"{resource.identity}: wait failed: {e}")


class LaunchConfigurationSweeper(ResourceSweeper):
    """Sweeper for launch configurations."""

    category = "launch-configuration"
    service_name = "autoscaling"

    NOT_FOUND_CODES = frozenset()

    @property
    def arn_resource_type(self) -> str:
        return "launchConfiguration"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_launch_configurations")
        for page in paginator.paginate():
            yield from page.get("LaunchConfigurations", [])

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        return SweptResource(
            identity=ResourceIdentity.from_arn(raw["LaunchConfigurationARN"]),
            resource_id=raw["LaunchConfigurationName"],
            raw=raw,
        )

    def delete(self, client: Any, resource: SweptResource) -> None:
        client.delete_launch_configuration(LaunchConfigurationName=resource.resource_id)
