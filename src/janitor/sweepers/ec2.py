"""EC2 and VPC sweepers."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Set

from botocore.exceptions import BotoCoreError, ClientError

from .base import ResourceSweeper, SweptResource


class InstanceSweeper(ResourceSweeper):
    """Sweeper for pending and running EC2 instances."""

    category = "instance"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_instances")
        filters = [{"Name": "instance-state-name", "Values": ["running", "pending"]}]
        for page in paginator.paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                yield from reservation.get("Instances", [])

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        instance_id = raw["InstanceId"]
        return SweptResource(identity=self._identity(instance_id), resource_id=instance_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        client.terminate_instances(InstanceIds=[resource.resource_id])


class SubnetSweeper(ResourceSweeper):
    """Sweeper for non-default subnets."""

    category = "subnet"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_subnets")
        for page in paginator.paginate():
            yield from page.get("Subnets", [])

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        # Default subnets belong to the default VPC, one per availability zone
        return bool(raw.get("DefaultForAz"))

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        subnet_id = raw["SubnetId"]
        return SweptResource(identity=self._identity(subnet_id), resource_id=subnet_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        client.delete_subnet(SubnetId=resource.resource_id)


class InternetGatewaySweeper(ResourceSweeper):
    """Sweeper for internet gateways. Gateways are detached before deletion."""

    category = "internet-gateway"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_internet_gateways")
        for page in paginator.paginate():
            yield from page.get("InternetGateways", [])

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        gateway_id = raw["InternetGatewayId"]
        return SweptResource(identity=self._identity(gateway_id), resource_id=gateway_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        for attachment in resource.raw.get("Attachments", []):
            vpc_id = attachment.get("VpcId")
            try:
                client.detach_internet_gateway(InternetGatewayId=resource.resource_id, VpcId=vpc_id)
            except (ClientError, BotoCoreError) as e:
                self._warn_client_error(resource, f"detach from {vpc_id}", e)
        client.delete_internet_gateway(InternetGatewayId=resource.resource_id)


class RouteTableSweeper(ResourceSweeper):
    """Sweeper for non-main route tables. Associations are removed first."""

    category = "route-table"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_route_tables")
        for page in paginator.paginate():
            yield from page.get("RouteTables", [])

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        # The main route table of a VPC goes away with the VPC. The
        # association.main filter is unreliable, so inspect associations.
        return any(assoc.get("Main") for assoc in raw.get("Associations", []))

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        table_id = raw["RouteTableId"]
        return SweptResource(identity=self._identity(table_id), resource_id=table_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        for assoc in resource.raw.get("Associations", []):
            target = assoc.get("SubnetId") or assoc.get("GatewayId")
            self.logger.info(f"{resource.identity}: disassociating from {target}")
            try:
                client.disassociate_route_table(AssociationId=assoc["RouteTableAssociationId"])
            except (ClientError, BotoCoreError) as e:
                self._warn_client_error(resource, f"disassociation from {target}", e)
        client.delete_route_table(RouteTableId=resource.resource_id)


class VpcSweeper(ResourceSweeper):
    """Sweeper for non-default VPCs."""

    category = "vpc"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_vpcs")
        for page in paginator.paginate():
            yield from page.get("Vpcs", [])

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        return bool(raw.get("IsDefault"))

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        vpc_id = raw["VpcId"]
        return SweptResource(identity=self._identity(vpc_id), resource_id=vpc_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        dhcp_options_id = resource.raw.get("DhcpOptionsId")
        if dhcp_options_id and dhcp_options_id != "default":
            # Release the option set so the DHCP options sweeper can delete it
            try:
                client.associate_dhcp_options(VpcId=resource.resource_id, DhcpOptionsId="default")
            except (ClientError, BotoCoreError) as e:
                self._warn_client_error(resource, f"disassociating DHCP option set {dhcp_options_id}", e)
        client.delete_vpc(VpcId=resource.resource_id)


class DhcpOptionsSweeper(ResourceSweeper):
    """Sweeper for DHCP option sets not used by a default VPC."""

    category = "dhcp-option"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._default_vpc_options: Set[str] = set()

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        # Option sets of default VPCs are protected; find them before listing
        self._default_vpc_options = set()
        paginator = client.get_paginator("describe_vpcs")
        for page in paginator.paginate(Filters=[{"Name": "isDefault", "Values": ["true"]}]):
            for vpc in page.get("Vpcs", []):
                self._default_vpc_options.add(vpc.get("DhcpOptionsId"))

        paginator = client.get_paginator("describe_dhcp_options")
        for page in paginator.paginate():
            yield from page.get("DhcpOptions", [])

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        return raw.get("DhcpOptionsId") in self._default_vpc_options

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        options_id = raw["DhcpOptionsId"]
        return SweptResource(identity=self._identity(options_id), resource_id=options_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        client.delete_dhcp_options(DhcpOptionsId=resource.resource_id)


class VolumeSweeper(ResourceSweeper):
    """Sweeper for EBS volumes."""

    category = "volume"

    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        paginator = client.get_paginator("describe_volumes")
        for page in paginator.paginate():
            yield from page.get("Volumes", [])

    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        volume_id = raw["VolumeId"]
        return SweptResource(identity=self._identity(volume_id), resource_id=volume_id, raw=raw)

    def delete(self, client: Any, resource: SweptResource) -> None:
        client.delete_volume(VolumeId=resource.resource_id)
