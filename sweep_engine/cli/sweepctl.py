#!/usr/bin/env python3
"""
Sweep Control CLI - Command Line Interface for the Sweep Engine.

Provides commands for running the computer-account lifecycle sweep or
any of its stages, previewing candidates, and reading the audit log.
"""

import logging
import sys
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.table import Table

from ..audit import AuditSink, FileAuditLog
from ..config import SweepConfig, load_config
from ..connectors import DirectoryConnector, create_connector
from ..engine.policy import format_date
from ..exceptions import ConfigError
from ..models import SweepResult
from ..workflows import LifecycleSweep

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


class SweepController:
    """Main controller for Sweep Engine operations."""

    def __init__(self, config: SweepConfig, mock_mode: Optional[bool] = None):
        """Initialize the sweep controller; an explicit mock_mode wins over the config file."""
        self.config = config
        self.mock_mode = config.directory.mock_mode if mock_mode is None else mock_mode

        settings: Dict[str, Any] = dict(config.directory.model_dump(), mock_mode=self.mock_mode)
        self.directory: DirectoryConnector = create_connector(settings, mock=self.mock_mode)
        self.audit_log = FileAuditLog(
            config.log_file,
            max_age_days=config.log_max_age_days,
            max_lines=config.log_max_lines,
        )

    def sweep(self) -> LifecycleSweep:
        return LifecycleSweep(self.config, self.directory, self.audit_log)


class _DiscardingSink(AuditSink):
    """Audit sink for read-only previews."""

    def append(self, entry):
        logger.debug(f"Preview: {entry.message}")


def _load(config_path: Optional[str], overrides: Dict[str, Any]) -> SweepConfig:
    try:
        return load_config(config_path, overrides)
    except ConfigError as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        sys.exit(1)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(), help='Path to YAML configuration file')
@click.option('--mock/--real', default=None,
              help='Use the in-memory directory or a real LDAP connection (default: directory.mockMode)')
@click.option('--quarantine-path', help='Override the quarantine container DN')
@click.option('--retention-days', type=int, help='Override the retention period')
@click.option('--inactivity-days', type=int, help='Override the inactivity threshold')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config_path, mock, quarantine_path, retention_days, inactivity_days, verbose):
    """Sweep Engine Control CLI - Computer Account Lifecycle Automation"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    overrides = {
        "quarantine_path": quarantine_path,
        "retention_days": retention_days,
        "inactivity_days": inactivity_days,
    }
    config = _load(config_path, overrides)

    ctx.ensure_object(dict)
    ctx.obj['controller'] = SweepController(config, mock)


@cli.command()
@click.pass_context
def run(ctx):
    """Run the full sweep: scan, quarantine, reconcile, reap."""
    controller = ctx.obj['controller']

    console.print(f"[blue]Starting sweep (mock_mode={controller.mock_mode})[/blue]")
    result = controller.sweep().run()
    display_sweep_results(result)


@cli.command()
@click.pass_context
def scan(ctx):
    """List inactive accounts without changing anything."""
    controller = ctx.obj['controller']
    config = controller.config
    sweep = LifecycleSweep(config, controller.directory, _DiscardingSink())

    result = sweep.scanner().execute(config.search_roots, config.search_scope, config.quarantine_path)
    now = sweep.clock()

    for warning in result.warnings:
        console.print(f"[yellow]{warning}[/yellow]")

    if not result.candidates:
        console.print("[yellow]No inactive machine accounts found[/yellow]")
        return

    table = Table(title=f"Inactive Machine Accounts ({len(result.candidates)})")
    table.add_column("Name", style="cyan")
    table.add_column("Container", style="green")
    table.add_column("Last Activity", style="yellow")

    for account in result.candidates:
        table.add_row(account.name, account.path, format_date(account.last_activity_at, now.tzinfo))

    console.print(table)


@cli.command()
@click.pass_context
def reconcile(ctx):
    """Disable enabled accounts found in the quarantine container."""
    controller = ctx.obj['controller']

    disabled = controller.sweep().reconciler().execute(controller.config.quarantine_path)
    if disabled:
        console.print(f"[green]✓ Disabled {len(disabled)} accounts: {', '.join(disabled)}[/green]")
    else:
        console.print("[yellow]No accounts disabled[/yellow]")


@cli.command()
@click.pass_context
def reap(ctx):
    """Delete quarantined accounts past the retention period."""
    controller = ctx.obj['controller']

    removed = controller.sweep().reaper().execute(controller.config.quarantine_path)
    if removed:
        console.print(f"[green]✓ Deleted {len(removed)} accounts: {', '.join(removed)}[/green]")
    else:
        console.print("[yellow]No accounts deleted[/yellow]")


@cli.command(name='show-log')
@click.option('--limit', default=50, help='Maximum number of lines to show')
@click.pass_context
def show_log(ctx, limit):
    """Show the newest audit log lines."""
    controller = ctx.obj['controller']

    lines = controller.audit_log.read_lines(limit)
    if not lines:
        console.print("[yellow]Audit log is empty[/yellow]")
        return

    for line in lines:
        console.print(line, markup=False)


def display_sweep_results(result: SweepResult):
    """Display sweep execution results."""
    if result.success:
        console.print("[green]✓ Sweep completed successfully[/green]")
    else:
        failures = sum(len(stage.failures) for stage in result.stages)
        warnings = sum(len(stage.warnings) for stage in result.stages)
        console.print(f"[red]✗ Sweep completed with {failures} failures and {warnings} warnings[/red]")

    table = Table(title=f"Sweep {result.run_id}")
    table.add_column("Stage", style="cyan")
    table.add_column("Processed", style="magenta")
    table.add_column("Succeeded", style="green")
    table.add_column("Skipped", style="yellow")
    table.add_column("Failed", style="red")

    for stage in result.stages:
        table.add_row(
            stage.stage.value,
            str(len(stage.processed)),
            str(len(stage.succeeded)),
            str(len(stage.skipped)),
            str(len(stage.failures)),
        )

    console.print(table)

    for stage in result.stages:
        for warning in stage.warnings:
            console.print(f"[yellow]{stage.stage.value}: {warning}[/yellow]")
        for failure in stage.failures:
            console.print(f"[red]{stage.stage.value}: {failure['account']} {failure['kind']} ({failure['error']})[/red]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
