"""Ledger persistence stores.

Stores expose ``get() -> Optional[bytes]`` (``None`` when nothing has been
saved yet) and ``put(data: bytes)``. A missing object is a normal outcome on
load, never an error.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.aws.client import create_boto_client
from src.janitor.errors import PersistenceError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3LedgerStore:
    """Ledger stored as a single S3 object.

    Attributes:
        bucket: Bucket name
        key: Object key
        region: Bucket region, resolved lazily with GetBucketLocation
    """

    def __init__(
        self,
        session: boto3.Session,
        bucket: str,
        key: str,
        region: Optional[str] = None,
    ) -> None:
        if not bucket or not key:
            raise ValueError(f"S3 ledger location needs a bucket and a key (got bucket={bucket!r}, key={key!r})")
        self.session = session
        self.bucket = bucket
        self.key = key
        self.region = region
        self._client = None

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def _resolve_region(self) -> str:
        client = create_boto_client("s3", region_name="us-east-1", session=self.session)
        try:
            response = client.get_bucket_location(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Unable to locate bucket {self.bucket}: {e}") from e
        # Buckets in us-east-1 report a null location constraint
        return response.get("LocationConstraint") or "us-east-1"

    def _get_client(self):
        if self._client is None:
            if self.region is None:
                self.region = self._resolve_region()
            self._client = create_boto_client("s3", region_name=self.region, session=self.session)
        return self._client

    def get(self) -> Optional[bytes]:
        client = self._get_client()
        try:
            response = client.get_object(Bucket=self.bucket, Key=self.key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in _NOT_FOUND_CODES:
                return None
            raise PersistenceError(f"Error loading {self}: {error_code}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"Error loading {self}: {e}") from e

        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def put(self, data: bytes) -> None:
        client = self._get_client()
        try:
            client.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=data,
                CacheControl="max-age=0",
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Error saving {self}: {e}") from e


class LocalLedgerStore:
    """Ledger stored as a local JSON file, replaced atomically on save."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def __str__(self) -> str:
        return str(self.path)

    def get(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Error loading {self.path}: {e}") from e

    def put(self, data: bytes) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Error saving {self.path}: {e}") from e


def open_ledger_store(location: str, session: Optional[boto3.Session] = None):
    """Open the ledger store for a location reference.

    Args:
        location: ``s3://bucket/key``, ``file:///path`` or a plain filesystem path
        session: boto3 session, required for S3 locations

    Raises:
        ValueError: If the location is empty or uses an unsupported scheme
    """
    if not location:
        raise ValueError("A ledger location is required")

    parsed = urlparse(location)
    if parsed.scheme == "s3":
        if session is None:
            session = boto3.Session()
        return S3LedgerStore(session, bucket=parsed.netloc, key=parsed.path.lstrip("/"))
    if parsed.scheme == "file":
        return LocalLedgerStore(parsed.path)
    if parsed.scheme == "":
        return LocalLedgerStore(location)

    raise ValueError(f"Unsupported ledger location scheme {parsed.scheme!r} in {location!r}")
