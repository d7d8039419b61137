"""
hostdeploy - UI Components
Standardized headers and the end-of-run stage table
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hostdeploy.models.results import PipelineReport, StageStatus

LOGO = "hostdeploy"

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"

STATUS_STYLES = {
    StageStatus.SUCCEEDED: f"[{SUCCESS_COLOR}]✓ succeeded[/{SUCCESS_COLOR}]",
    StageStatus.FAILED: f"[{ERROR_COLOR}]✗ failed[/{ERROR_COLOR}]",
    StageStatus.SKIPPED: "[dim]⊘ skipped[/dim]",
}


def show_header(
    title: str,
    subtitle: str = None,
    details: dict = None,
    console: Console = None,
):
    """
    Display a standardized hostdeploy command header.

    Args:
        title: Main title (e.g., "Deploy", "Cleanup")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Deploy",
            details={"Server": "ubuntu@203.0.113.7", "Branch": "main"}
        )
    """
    if console is None:
        console = Console()

    prefix = f" [bold color(214)]{LOGO}[/bold color(214)] [dim]›[/dim]"
    console.print(f"{prefix} [bold white]{escape(title)}[/bold white]")

    if subtitle:
        console.print(f"{prefix} [dim]{escape(subtitle)}[/dim]")

    if details:
        for key, value in details.items():
            console.print(f"{prefix} {escape(str(key))}: [{BRAND_COLOR}]{escape(str(value))}[/{BRAND_COLOR}]")

    console.print()


def stage_table(report: PipelineReport) -> Table:
    """Table with one row per stage that ran."""
    table = Table(title=f"{report.mode.capitalize()} pipeline", title_justify="left", padding=(0, 1))
    table.add_column("Stage", style=BRAND_COLOR, no_wrap=True)
    table.add_column("Status")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Details", style="dim")

    for outcome in report.outcomes:
        detail = escape(outcome.reason)
        if outcome.warnings:
            detail = f"{detail} [{WARNING_COLOR}]({len(outcome.warnings)} warning(s))[/{WARNING_COLOR}]"
        table.add_row(
            escape(outcome.stage),
            STATUS_STYLES[outcome.status],
            f"{outcome.duration_seconds:.1f}s",
            detail,
        )
    return table
