"""Main CLI entry point using Typer."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..aws.account import Account, Credentials
from ..config.loader import NukeConfig, load_config
from ..errors import ConfigurationError, ConvergenceError, CredentialValidationError, NukeAborted
from ..models.run_report import EXIT_CONFIGURATION, EXIT_INCOMPLETE
from ..nuke.audit import AuditStorage
from ..nuke.blueprint import BlueprintBuilder
from ..nuke.confirm import DEFAULT_FORCE_SLEEP
from ..nuke.reporter import NukeReporter
from ..nuke.runner import NukeParameters, NukeRunner
from ..resources.registry import ResourceRegistry, get_lister_class, lister_names
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="awsnuke",
    help="awsnuke - remove all resources from an AWS account, except the ones you protect",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global settings
config: Optional[Config] = None


@dataclass
class GlobalOptions:
    """Options given before the command name."""

    config_paths: list[str] = field(default_factory=list)
    credentials: Credentials = field(default_factory=Credentials)
    default_region: Optional[str] = None


options = GlobalOptions()


@app.callback()
def main(
    config_paths: Optional[List[str]] = typer.Option(
        None, "--config", "-c", help="Path to the nuke config file (repeat to merge several files)"
    ),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS profile name"),
    access_key_id: Optional[str] = typer.Option(None, "--access-key-id", help="AWS access key ID"),
    secret_access_key: Optional[str] = typer.Option(None, "--secret-access-key", help="AWS secret access key"),
    session_token: Optional[str] = typer.Option(None, "--session-token", help="AWS session token"),
    default_region: Optional[str] = typer.Option(
        None, "--default-region", help="Region for global services and the identity lookup"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """awsnuke - remove all resources from an AWS account, except the ones you protect."""
    global config, options

    try:
        config = Config.load()
    except ConfigurationError as e:
        console.print(f"✗ {escape(str(e))}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    # Static keys take precedence over a profile from the environment
    has_keys = bool(access_key_id or secret_access_key)
    options = GlobalOptions(
        config_paths=list(config_paths or []),
        credentials=Credentials(
            profile=profile or (None if has_keys else config.aws_profile),
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
        ),
        default_region=default_region,
    )

    setup_logging(level="DEBUG" if verbose else config.log_level, verbose=verbose)

    if no_color:
        console.no_color = True


def _load_nuke_config() -> NukeConfig:
    if not options.config_paths:
        raise ConfigurationError("No config file given, use --config")
    return load_config(*options.config_paths)


def _connect(show: bool = True) -> Account:
    account = Account.connect(
        options.credentials,
        default_region=options.default_region,
        call_timeout=config.call_timeout,
    )
    if not show:
        return account
    console.print(
        Panel(
            f"Account ID: [cyan]{account.account_id}[/cyan]\n"
            f"Aliases:    [cyan]{', '.join(account.aliases) or '(none)'}[/cyan]",
            title="[bold]AWS Account[/bold]",
            border_style="cyan",
        )
    )
    return account


@app.command()
def run(
    target: Optional[List[str]] = typer.Option(
        None, "--target", "-t", help="Limit nuking to certain resource types (repeatable)"
    ),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-e", help="Prevent nuking of certain resource types (repeatable)"
    ),
    no_dry_run: bool = typer.Option(False, "--no-dry-run", help="Actually delete found resources"),
    force: bool = typer.Option(False, "--force", help="Don't ask for confirmation, wait --force-sleep instead"),
    force_sleep: int = typer.Option(
        DEFAULT_FORCE_SLEEP, "--force-sleep", help="Seconds to wait before starting with --force (minimum 3)"
    ),
    max_wait_retries: int = typer.Option(
        0, "--max-wait-retries", help="Sweeps without progress before giving up (0 = never give up)"
    ),
    max_attempts: int = typer.Option(
        0, "--max-attempts", help="Removal attempts per resource before giving up (0 = unlimited)"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Don't show filtered resources"),
    audit_dir: Optional[str] = typer.Option(
        None, "--audit-dir", help="Write a YAML audit log of the run to this directory"
    ),
):
    """Scan the account and remove every resource not protected by a filter.

    Without --no-dry-run nothing is removed: the command only shows what
    would be deleted.

    Examples:
        # Show what would be removed
        awsnuke -c nuke-config.yaml run

        # Remove everything except protected resources, without a prompt
        awsnuke -c nuke-config.yaml run --no-dry-run --force --force-sleep 5

        # Only S3 buckets and Lambda functions
        awsnuke -c nuke-config.yaml run -t S3Bucket -t LambdaFunction
    """
    try:
        nuke_config = _load_nuke_config()
        params = NukeParameters(
            targets=list(target or []),
            excludes=list(exclude or []),
            no_dry_run=no_dry_run,
            force=force,
            force_sleep=force_sleep,
            max_wait_retries=max_wait_retries,
            max_attempts=max_attempts,
            quiet=quiet,
        )
        params.validate()

        account = _connect()
        audit_path = audit_dir or config.audit_dir

        runner = NukeRunner(
            account=account,
            config=nuke_config,
            params=params,
            registry=ResourceRegistry.from_account(account),
            reporter=NukeReporter(console=console, quiet=quiet),
            audit_storage=AuditStorage(audit_path) if audit_path else None,
            max_workers=config.max_workers,
            sweep_interval=config.sweep_interval,
        )
        report = runner.run()
        report.raise_for_status()

        if report.exit_code:
            raise typer.Exit(code=report.exit_code)

    except typer.Exit:
        raise
    except (ConfigurationError, CredentialValidationError) as e:
        console.print(f"✗ {escape(str(e))}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    except ConvergenceError as e:
        console.print(f"✗ Run did not converge: {escape(str(e))}", style="bold red")
        raise typer.Exit(code=EXIT_INCOMPLETE)
    except NukeAborted as e:
        console.print(f"✗ {escape(str(e))}", style="bold red")
        raise typer.Exit(code=EXIT_INCOMPLETE)
    except KeyboardInterrupt:
        console.print("✗ Interrupted", style="bold red")
        raise typer.Exit(code=EXIT_INCOMPLETE)
    except Exception as e:
        console.print(f"✗ Error during nuke run: {escape(str(e))}", style="bold red")
        logger.exception("Error in run command")
        raise typer.Exit(code=EXIT_INCOMPLETE)


@app.command()
def blueprint(
    include_filtered: bool = typer.Option(
        False, "--include-filtered", "-f", help="List already filtered resources as comments"
    ),
    include_name: bool = typer.Option(False, "--include-name", "-n", help="Also filter resources by their name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the blueprint to a file"),
    target: Optional[List[str]] = typer.Option(None, "--target", "-t", help="Limit to certain resource types"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Skip certain resource types"),
):
    """Generate a filter config that protects every resource in the account.

    Pass the result as a second --config to protect the account's current
    state from later runs.

    Examples:
        awsnuke -c nuke-config.yaml blueprint -o baseline.yaml
        awsnuke -c nuke-config.yaml -c baseline.yaml run
    """
    try:
        nuke_config = _load_nuke_config()
        # stdout may carry the blueprint itself
        account = _connect(show=output is not None)

        builder = BlueprintBuilder(
            account=account,
            config=nuke_config,
            registry=ResourceRegistry.from_account(account),
            targets=list(target or []),
            excludes=list(exclude or []),
            max_workers=config.max_workers,
        )
        document = builder.build(include_filtered=include_filtered, include_name=include_name)

        if output:
            output.write_text(document)
            console.print(f"✓ Blueprint written to: [cyan]{output}[/cyan]")
        else:
            typer.echo(document, nl=False)

    except typer.Exit:
        raise
    except (ConfigurationError, CredentialValidationError) as e:
        console.print(f"✗ {escape(str(e))}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    except Exception as e:
        console.print(f"✗ Error generating blueprint: {escape(str(e))}", style="bold red")
        logger.exception("Error in blueprint command")
        raise typer.Exit(code=EXIT_INCOMPLETE)


@app.command("resource-types")
def resource_types():
    """List every resource type awsnuke can remove."""
    table = Table(title="Resource Types", show_header=True, header_style="bold magenta")
    table.add_column("Resource Type", style="cyan")
    table.add_column("Service", style="white")
    table.add_column("Scope", style="yellow")
    table.add_column("ID Property", style="green")

    for name in lister_names():
        lister_class = get_lister_class(name)
        table.add_row(
            name,
            lister_class.service_name,
            "global" if lister_class.is_global_service else "regional",
            lister_class.id_property or "-",
        )

    console.print(table)


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"awsnuke version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
