"""Credential validation and account resolution."""

from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..models.identity import parse_arn
from .client import create_boto_client

logger = logging.getLogger(__name__)


class CredentialValidationError(Exception):
    """Raised when AWS credentials are missing or cannot be validated."""


def get_account_id(session: boto3.Session, region: Optional[str] = None) -> str:
    """Resolve the account that the session's credentials belong to.

    The caller identity ARN is parsed rather than trusting the ``Account``
    field alone, so that a malformed response fails loudly.

    Args:
        session: boto3 session to query
        region: Region for the STS endpoint (optional)

    Returns:
        12-digit AWS account ID

    Raises:
        CredentialValidationError: If credentials are missing or invalid
    """
    try:
        client = create_boto_client("sts", region_name=region, session=session, max_attempts=5)
        response = client.get_caller_identity()
    except NoCredentialsError as e:
        raise CredentialValidationError("No AWS credentials found") from e
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        raise CredentialValidationError(f"Unable to validate AWS credentials: {error_code}") from e
    except BotoCoreError as e:
        raise CredentialValidationError(f"Unable to validate AWS credentials: {e}") from e

    try:
        account_id = parse_arn(response["Arn"]).account
    except (KeyError, ValueError) as e:
        raise CredentialValidationError(f"Unexpected caller identity response: {response}") from e

    logger.debug(f"Account: {account_id}")
    return account_id
