"""Main CLI entry point using Typer."""

import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..aws.credentials import CredentialValidationError
from ..janitor.errors import OrchestrationError, PersistenceError
from ..models.sweep_run import RunStatus, SweepRun
from ..utils.logging import setup_logging
from .config import Config, parse_duration, parse_regions

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="aws-janitor",
    help="AWS Janitor - mark-and-sweep cleanup of orphaned test resources",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        help="YAML config file (default: ~/.aws-janitor/config.yaml or $AWS_JANITOR_CONFIG)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
):
    """AWS Janitor - mark-and-sweep cleanup of orphaned test resources."""
    global config

    try:
        config = Config.load(config_file)
    except (ValueError, OSError) as e:
        console.print(f"✗ Invalid configuration: {e}", style="bold red")
        raise typer.Exit(code=1)

    if profile:
        config.aws_profile = profile

    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"aws-janitor version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


@app.command("run")
def run_command(
    regions: Optional[str] = typer.Option(
        None,
        "--regions",
        "-r",
        help=(
            "Comma separated list of regions to sweep (default: us-west-2). "
            "Ledger entries of other regions are dropped."
        ),
    ),
    ttl: Optional[str] = typer.Option(
        None,
        "--ttl",
        help="Maximum time before a resource is deleted, e.g. 24h. Use 0s to delete all non-default resources.",
    ),
    path: Optional[str] = typer.Option(None, "--path", help="Ledger location: s3://bucket/key or a local file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be deleted without deleting or saving"),
    wait_timeout: Optional[int] = typer.Option(
        None, "--wait-timeout", help="Seconds to wait for Auto Scaling groups to disappear"
    ),
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir", help="Directory for YAML run logs"),
):
    """Mark every resource, delete those older than the TTL, and save the ledger."""
    from ..janitor import run_janitor

    try:
        config.apply(
            {
                "regions": parse_regions(regions) if regions else None,
                "ttl": parse_duration(ttl) if ttl else None,
                "path": path,
                "wait_timeout": wait_timeout,
                "audit_dir": audit_dir,
            }
        )
        config.validate()
    except ValueError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)

    try:
        run = run_janitor(config, dry_run=dry_run)
    except CredentialValidationError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except (OrchestrationError, PersistenceError) as e:
        console.print(f"✗ Run aborted: {e}", style="bold red")
        logger.error(f"Run aborted: {e}")
        raise typer.Exit(code=2)

    _print_run(run)


def _print_run(run: SweepRun) -> None:
    table = Table(title=f"Sweep of account {run.account_id}", show_header=True, header_style="bold magenta")
    table.add_column("Region", style="cyan")
    table.add_column("Category", style="cyan")
    table.add_column("Listed", justify="right")
    table.add_column("Protected", justify="right")
    table.add_column("Expired", justify="right")
    table.add_column("Deleted", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Error")

    for result in run.results:
        table.add_row(
            result.region,
            result.category,
            str(result.listed_count),
            str(result.protected_count),
            str(result.eligible_count),
            str(result.deleted_count),
            str(result.failed_count),
            result.error or "",
        )

    console.print()
    console.print(table)
    console.print()

    if run.status == RunStatus.DRY_RUN:
        console.print("Dry run: nothing deleted, ledger unchanged", style="yellow")
    elif run.status == RunStatus.COMPLETED:
        console.print(f"✓ Run {run.run_id} completed", style="green")
    else:
        console.print(f"⚠️  Run {run.run_id} finished with failures, see warnings above", style="yellow")

    if run.ledger_size_after is not None:
        console.print(
            f"Ledger: {run.ledger_size_before} -> {run.ledger_size_after} entries "
            f"({run.reconciled_count} gone since last run)"
        )


# Ledger commands group
ledger_app = typer.Typer(help="Ledger inspection commands")
app.add_typer(ledger_app, name="ledger")


@ledger_app.command("show")
def ledger_show(
    path: Optional[str] = typer.Option(None, "--path", help="Ledger location: s3://bucket/key or a local file"),
):
    """Show every ARN in the ledger with when it was first seen."""
    from ..aws.client import create_session
    from ..janitor.ledger import Ledger, format_timestamp
    from ..janitor.storage import open_ledger_store

    location = path or config.path
    if not location:
        console.print("✗ A ledger path is required (--path or AWS_JANITOR_PATH)", style="bold red")
        raise typer.Exit(code=1)

    try:
        store = open_ledger_store(location, create_session(config.aws_profile))
        ledger = Ledger.load(store, config.ttl)
    except ValueError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except PersistenceError as e:
        console.print(f"✗ Error loading ledger: {e}", style="bold red")
        raise typer.Exit(code=2)

    entries = ledger.entries()
    if not entries:
        console.print(f"Ledger at {location} is empty", style="yellow")
        return

    table = Table(title=f"Ledger {location}", show_header=True, header_style="bold magenta")
    table.add_column("ARN", style="cyan")
    table.add_column("First Seen")
    table.add_column("Age", justify="right")
    table.add_column("Expired", justify="center")

    for arn, seen in sorted(entries.items(), key=lambda item: item[1]):
        age = ledger.age(arn)
        expired = "yes" if age > config.ttl else ""
        table.add_row(arn, format_timestamp(seen), str(age).split(".")[0], expired)

    console.print()
    console.print(table)
    console.print()
    console.print(f"Total entries: {len(entries)} (TTL {config.ttl})")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
