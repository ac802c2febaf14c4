"""Resource sweepers, one per category.

Classes:
    ResourceSweeper: Shared two-phase mark-and-sweep algorithm
    AutoScalingGroupSweeper, LaunchConfigurationSweeper: Auto Scaling
    InstanceSweeper, SubnetSweeper, InternetGatewaySweeper, RouteTableSweeper,
    VpcSweeper, DhcpOptionsSweeper, VolumeSweeper: EC2/VPC
    SecurityGroupSweeper: Security groups with reference resolution
"""

from __future__ import annotations

from .autoscaling import AutoScalingGroupSweeper, LaunchConfigurationSweeper
from .base import ResourceSweeper, SweptResource
from .ec2 import (
    DhcpOptionsSweeper,
    InstanceSweeper,
    InternetGatewaySweeper,
    RouteTableSweeper,
    SubnetSweeper,
    VolumeSweeper,
    VpcSweeper,
)
from .security_groups import SecurityGroupSweeper

__all__ = [
    "ResourceSweeper",
    "SweptResource",
    "AutoScalingGroupSweeper",
    "LaunchConfigurationSweeper",
    "InstanceSweeper",
    "SubnetSweeper",
    "SecurityGroupSweeper",
    "InternetGatewaySweeper",
    "RouteTableSweeper",
    "VpcSweeper",
    "DhcpOptionsSweeper",
    "VolumeSweeper",
]
