"""Console reporting of scan results, sweeps and run summaries."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models.deletion_record import DeletionRecord, ItemState
from ..models.resource import format_value
from ..models.run_report import RunMode, RunReport

STATE_STYLES = {
    ItemState.NEW: "white",
    ItemState.FILTERED: "dim",
    ItemState.PENDING: "cyan",
    ItemState.REMOVING: "blue",
    ItemState.WAITING: "yellow",
    ItemState.REMOVED: "green",
    ItemState.FAILED: "bold red",
    ItemState.SKIPPED: "magenta",
}


class NukeReporter:
    """Format and display run progress."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        """Initialize reporter.

        Args:
            console: Rich console instance (creates new one if not provided)
            quiet: Hide filtered resources
        """
        self.console = console or Console()
        self.quiet = quiet

    def notice(self, message: str) -> None:
        self.console.print()
        self.console.print(escape(message), style="bold")
        self.console.print()

    def format_record(self, record: DeletionRecord) -> str:
        """One line per resource: region - type - id - [properties] - reason."""
        resource = record.resource
        properties = ", ".join(
            f'{key}: "{format_value(value)}"' for key, value in sorted(resource.properties.items())
        )
        reason = record.reason or record.state.value
        style = STATE_STYLES[record.state]
        prefix = f"{resource.region} - {resource.resource_type} - {resource} - [{properties}] - "
        return f"{escape(prefix)}[{style}]{escape(reason)}[/{style}]"

    def print_record(self, record: DeletionRecord) -> None:
        if self.quiet and record.state == ItemState.FILTERED:
            return
        self.console.print(self.format_record(record), highlight=False, soft_wrap=True)

    def print_scan_summary(self, report: RunReport) -> None:
        candidates = len(report.candidates)
        self.console.print()
        self.console.print(
            f"Scan complete: {report.total_resources} total, {candidates} nukeable, "
            f"{report.filtered_count} filtered."
        )
        if report.scan_errors:
            self.console.print(f"[yellow]{len(report.scan_errors)} listing(s) failed:[/yellow]")
            for error in report.scan_errors:
                self.console.print(f"  [yellow]•[/yellow] {escape(str(error))}", highlight=False)

    def print_sweep(self, sweep: int, records: list[DeletionRecord]) -> None:
        """Print every non-filtered record after a sweep, then the counts."""
        counts = {state: 0 for state in ItemState}
        for record in records:
            counts[record.state] += 1
            if record.state != ItemState.FILTERED:
                self.console.print(self.format_record(record), highlight=False, soft_wrap=True)

        self.console.print()
        self.console.print(
            f"Sweep {sweep}: {counts[ItemState.WAITING]} waiting, {counts[ItemState.FAILED]} failed, "
            f"{counts[ItemState.SKIPPED]} skipped, {counts[ItemState.REMOVED]} finished"
        )
        self.console.print()

    def print_final_summary(self, report: RunReport) -> None:
        if report.mode == RunMode.DRY_RUN:
            return

        table = Table(title="Nuke Summary", show_header=True, header_style="bold magenta")
        table.add_column("State", style="cyan", width=12)
        table.add_column("Count", justify="right", style="yellow", width=8)
        table.add_row("Removed", str(report.removed_count))
        table.add_row("Failed", str(report.failed_count))
        table.add_row("Skipped", str(report.skipped_count))
        table.add_row("Filtered", str(report.filtered_count))
        table.add_row("Sweeps", str(report.sweeps))

        self.console.print()
        self.console.print(table)
        self.console.print(
            f"Nuke complete: {report.failed_count} failed, {report.skipped_count} skipped, "
            f"{report.removed_count} finished."
        )
        if report.message:
            self.console.print(f"[bold red]✗ {escape(report.message)}[/bold red]")

        for record in report.records:
            if record.state in (ItemState.FAILED, ItemState.SKIPPED):
                self.console.print(self.format_record(record), highlight=False, soft_wrap=True)
