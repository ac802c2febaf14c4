"""Mark-and-sweep garbage collection of orphaned AWS resources.

Classes:
    Ledger: Persisted ARN -> first-seen map deciding TTL expiry
    SweepOrchestrator: Runs sweepers per region in dependency order
    AuditStorage: YAML run logs

Functions:
    run_janitor: Load the ledger, sweep, reconcile and save
"""

from __future__ import annotations

import logging
from typing import Optional

import boto3

from src.aws.client import create_session
from src.aws.credentials import get_account_id
from src.cli.config import Config
from src.janitor.audit import AuditStorage
from src.janitor.ledger import Ledger
from src.janitor.orchestrator import SWEEPER_TYPES, SweepOrchestrator
from src.janitor.storage import open_ledger_store
from src.models.sweep_run import SweepRun

logger = logging.getLogger(__name__)

__all__ = [
    "Ledger",
    "SweepOrchestrator",
    "SWEEPER_TYPES",
    "AuditStorage",
    "run_janitor",
]


def run_janitor(
    config: Config,
    session: Optional[boto3.Session] = None,
    account_id: Optional[str] = None,
    dry_run: bool = False,
) -> SweepRun:
    """Run one janitor pass against one account.

    The ledger is only saved after every region and sweeper ran without a
    fatal error. Deletions already issued stay in effect if saving fails.

    Args:
        config: Validated configuration
        session: boto3 session (default: from config.aws_profile)
        account_id: Account to sweep (default: resolved from credentials)
        dry_run: Mark and report only; nothing is deleted or saved

    Returns:
        The completed SweepRun

    Raises:
        CredentialValidationError: If the account cannot be resolved
        PersistenceError: If the ledger cannot be loaded or saved
        OrchestrationError: If a sweeper failed fatally
    """
    config.validate()
    if session is None:
        session = create_session(config.aws_profile)
    if account_id is None:
        account_id = get_account_id(session, config.regions[0])

    store = open_ledger_store(config.path, session)
    ledger = Ledger.load(store, config.ttl)

    orchestrator = SweepOrchestrator(
        session,
        account_id,
        ledger,
        dry_run=dry_run,
        wait_timeout=config.wait_timeout,
        max_attempts=config.max_retries,
    )
    run = orchestrator.run(config.regions)

    if dry_run:
        logger.info(f"Dry run: ledger at {store} left unchanged")
    else:
        ledger.save(store)

    if config.audit_dir:
        audit_file = AuditStorage(config.audit_dir).log_run(run)
        logger.info(f"Run log written to {audit_file}")

    return run
