"""Base class for resource sweepers.

A sweeper runs one mark-and-sweep pass over one resource category in one
region, in two strictly separated phases:

1. Snapshot: drain the paginated listing completely, skip protected
   resources, mark every other resource in the ledger and collect the ones
   whose TTL expired into an immutable deletion batch.
2. Mutate: resolve pre-delete obligations (detach, disassociate, revoke) and
   delete each batch member. Nothing is deleted while a listing is open.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.aws.client import DEFAULT_MAX_ATTEMPTS, create_boto_client
from src.janitor.errors import DeleteError, EnumerationError
from src.janitor.ledger import Ledger
from src.models.identity import ResourceIdentity
from src.models.sweep_record import SweepRecord, SweepStatus
from src.models.sweep_run import SweepResult

# Upper bound on blocking waits for provider-confirmed deletion
DEFAULT_WAIT_TIMEOUT = 600


@dataclass
class SweptResource:
    """A listed resource and its ledger identity.

    Attributes:
        identity: ARN-based identity used as the ledger key
        resource_id: Provider-local ID or name used by the delete call
        raw: Provider descriptor as returned by the listing call
    """

    identity: ResourceIdentity
    resource_id: str
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class ResourceSweeper(ABC):
    """Abstract base class for all resource sweepers.

    Each sweeper should:
    1. Name its category and the boto3 service it uses
    2. Implement list_resources to yield every live resource (paginated)
    3. Implement identify to derive the ledger identity of a resource
    4. Implement delete for a single resource
    5. Override is_protected, prepare and after_delete where the category
       has default resources or pre/post-delete obligations
    """

    #: Display name of the category (also the ARN resource type by default)
    category: str = ""
    #: boto3 service used to list and delete
    service_name: str = "ec2"

    # Error codes meaning the resource is already gone
    NOT_FOUND_CODES = frozenset(
        {
            "InvalidInstanceID.NotFound",
            "InvalidSubnetID.NotFound",
            "InvalidGroup.NotFound",
            "InvalidInternetGatewayID.NotFound",
            "InvalidRouteTableID.NotFound",
            "InvalidVpcID.NotFound",
            "InvalidDhcpOptionID.NotFound",
            "InvalidVolume.NotFound",
        }
    )

    def __init__(
        self,
        session: boto3.Session,
        account_id: str,
        region: str,
        dry_run: bool = False,
        wait_timeout: int = DEFAULT_WAIT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        """Initialize the sweeper.

        Args:
            session: boto3 session
            account_id: Account being swept
            region: Region to sweep
            dry_run: Mark only, never delete
            wait_timeout: Seconds to wait for confirmed deletion where supported
            max_attempts: Transport-level attempts per API call
        """
        self.session = session
        self.account_id = account_id
        self.region = region
        self.dry_run = dry_run
        self.wait_timeout = wait_timeout
        self.max_attempts = max_attempts
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @property
    def arn_service(self) -> str:
        """Service namespace of this category's ARNs."""
        return self.service_name

    @property
    def arn_resource_type(self) -> str:
        """Resource type prefix of this category's ARNs."""
        return self.category

    def _create_client(self) -> Any:
        return create_boto_client(
            self.service_name,
            region_name=self.region,
            session=self.session,
            max_attempts=self.max_attempts,
        )

    def _identity(self, resource_id: str) -> ResourceIdentity:
        return ResourceIdentity.for_resource(
            service=self.arn_service,
            region=self.region,
            account=self.account_id,
            resource_type=self.arn_resource_type,
            resource_id=resource_id,
        )

    @abstractmethod
    def list_resources(self, client: Any) -> Iterator[Dict[str, Any]]:
        """Yield provider descriptors of every live resource in the region."""

    @abstractmethod
    def identify(self, raw: Dict[str, Any]) -> SweptResource:
        """Derive the swept resource (and its identity) from a descriptor."""

    @abstractmethod
    def delete(self, client: Any, resource: SweptResource) -> None:
        """Delete one resource. Raises ClientError on failure."""

    def is_protected(self, raw: Dict[str, Any]) -> bool:
        """Whether a resource is a default/system resource that is never swept."""
        return False

    def prepare(self, client: Any, listed: Sequence[Dict[str, Any]], batch: Sequence[SweptResource]) -> None:
        """Resolve obligations that must be met before the batch is deleted.

        Args:
            client: boto3 client for the category
            listed: Every descriptor listed this pass, protected ones included
            batch: Resources selected for deletion
        """

    def after_delete(self, client: Any, deleted: Sequence[SweptResource]) -> None:
        """Hook run once the whole batch has been processed."""

    def owns(self, identity: ResourceIdentity) -> bool:
        """Whether a ledger identity belongs to this category."""
        return identity.service == self.arn_service and identity.resource_type == self.arn_resource_type

    def sweep(self, ledger: Ledger) -> SweepResult:
        """Run one mark-and-sweep pass.

        Args:
            ledger: Ledger shared by every sweeper of the run

        Returns:
            SweepResult with counts and one record per batch member

        Raises:
            EnumerationError: If listing the category failed
        """
        result = SweepResult(category=self.category, region=self.region)
        client = self._create_client()

        try:
            listed = list(self.list_resources(client))
        except (ClientError, BotoCoreError) as e:
            raise EnumerationError(self.category, self.region, e) from e

        resources: List[SweptResource] = []
        for raw in listed:
            if self.is_protected(raw):
                result.protected_count += 1
                continue
            resources.append(self.identify(raw))
        result.listed_count = len(listed)

        batch = tuple(resource for resource in resources if ledger.mark(resource.identity))
        result.eligible_count = len(batch)
        self.logger.debug(
            f"{self.region}: listed {len(listed)} {self.category} "
            f"({result.protected_count} protected, {len(batch)} expired)"
        )
        if not batch:
            return result

        if self.dry_run:
            for resource in batch:
                self.logger.warning(f"{resource.identity}: would delete {self.category} {resource.resource_id}")
                result.records.append(self._record(resource, SweepStatus.SKIPPED))
            return result

        for resource in batch:
            self.logger.warning(f"{resource.identity}: deleting {self.category} {resource.resource_id}")

        self.prepare(client, listed, batch)

        deleted: List[SweptResource] = []
        for resource in batch:
            record = self._delete_one(client, resource)
            if record.status == SweepStatus.DELETED:
                deleted.append(resource)
            result.records.append(record)

        self.after_delete(client, deleted)
        return result

    def _delete_one(self, client: Any, resource: SweptResource) -> SweepRecord:
        try:
            self.delete(client, resource)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            if error_code in self.NOT_FOUND_CODES:
                self.logger.info(f"{resource.identity}: already deleted")
                return self._record(resource, SweepStatus.DELETED)
            error = DeleteError(resource.identity.arn, error_code, error_message)
            self.logger.warning(str(error))
            return self._record(resource, SweepStatus.FAILED, error_code, error_message)
        except BotoCoreError as e:
            error = DeleteError(resource.identity.arn, type(e).__name__, str(e))
            self.logger.warning(str(error))
            return self._record(resource, SweepStatus.FAILED, type(e).__name__, str(e))

        return self._record(resource, SweepStatus.DELETED)

    def _record(self, resource: SweptResource, status: SweepStatus, error_code=None, error_message=None) -> SweepRecord:
        return SweepRecord(
            arn=resource.identity.arn,
            resource_id=resource.resource_id,
            category=self.category,
            region=self.region,
            status=status,
            timestamp=datetime.now(timezone.utc),
            error_code=error_code,
            error_message=error_message,
        )

    def _warn_client_error(self, resource: SweptResource, action: str, e: Exception) -> None:
        """Log a failed pre-delete obligation. The delete is still attempted."""
        if isinstance(e, ClientError):
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            self.logger.warning(f"{resource.identity}: {action} failed: {error_code}")
        else:
            self.logger.warning(f"{resource.identity}: {action} failed: {e}")
