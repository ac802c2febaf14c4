"""boto3 client construction with transport-level retry configuration."""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

# The account may be in a bad state, contending with API rate limiting and
# with the very resources being deleted, so retry aggressively by default.
DEFAULT_MAX_ATTEMPTS = 100


def create_session(profile_name: Optional[str] = None) -> boto3.Session:
    """Create a boto3 session, optionally bound to a named profile."""
    if profile_name:
        return boto3.Session(profile_name=profile_name)
    return boto3.Session()


def create_boto_client(
    service_name: str,
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
    session: Optional[boto3.Session] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Any:
    """Create a boto3 client with standard-mode retries and backoff.

    Args:
        service_name: AWS service name (e.g., "ec2", "autoscaling")
        region_name: AWS region (optional)
        profile_name: AWS profile name, ignored when a session is supplied
        session: Existing boto3 session to create the client from (optional)
        max_attempts: Total attempts per API call, including the first

    Returns:
        boto3 client for the service
    """
    if session is None:
        session = create_session(profile_name)

    config = BotoConfig(retries={"max_attempts": max_attempts, "mode": "standard"})
    return session.client(service_name, region_name=region_name, config=config)
