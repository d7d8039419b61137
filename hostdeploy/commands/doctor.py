"""hostdeploy CLI - Doctor command"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from hostdeploy.base import BaseCommand
from hostdeploy.constants import REQUIRED_TOOLS
from hostdeploy.core.config_loader import (
    environment_spec_values,
    load_config,
    resolve_spec_values,
)
from hostdeploy.models.command import Command
from hostdeploy.models.ssh import LocalTarget, RemoteTarget
from hostdeploy.services.executor import CommandExecutor


class DoctorCommand(BaseCommand):
    """Local tool and connectivity health check."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        verbose: bool = False,
        console: Optional[Console] = None,
        executor: Optional[CommandExecutor] = None,
    ):
        super().__init__(verbose=verbose, console=console)
        self.config_path = config_path
        self.executor = executor
        self.healthy = True
        self.table = Table(
            title="System Health Report", title_justify="left", padding=(0, 1)
        )
        self.table.add_column("Check", style="cyan", no_wrap=True)
        self.table.add_column("Status")
        self.table.add_column("Details", style="dim")

    def check_tool(self, tool_name: str) -> bool:
        """Check if a tool is installed."""
        result = self.executor.run(LocalTarget(), Command.of("which", tool_name))
        return result.is_success

    def check_tools(self) -> None:
        """Check required tools installation."""
        self.console.print("\n[cyan]━━━ Checking Tools ━━━[/cyan]")

        for tool in REQUIRED_TOOLS:
            if self.check_tool(tool):
                self.table.add_row(f"✅ {tool}", "[green]Installed[/green]", "")
            else:
                self.healthy = False
                self.table.add_row(f"❌ {tool}", "[red]Missing[/red]", f"Install {tool}")

    def check_connectivity(self, values: dict) -> None:
        """Probe the configured host, if there is one."""
        self.console.print("[cyan]━━━ Checking Connectivity ━━━[/cyan]")

        if not all(values.get(k) for k in ("host", "username", "key_path")):
            self.table.add_row(
                "⏳ SSH", "[yellow]Not configured[/yellow]", "Set host, username and key_path"
            )
            return

        target = RemoteTarget(
            host=values["host"], user=values["username"], key_path=values["key_path"]
        )
        if not target.key_exists:
            self.healthy = False
            self.table.add_row("❌ SSH key", "[red]Missing[/red]", escape(str(target.key_path_expanded)))
            return

        result = self.executor.probe(target)
        if result.is_success:
            self.table.add_row("✅ SSH", "[green]Reachable[/green]", escape(target.connection_string))
        else:
            self.healthy = False
            self.table.add_row(
                "❌ SSH", "[red]Unreachable[/red]", escape(result.describe_failure()[:60])
            )

    def execute(self) -> None:
        """Execute doctor checks."""
        config = load_config(self.config_path)
        if self.executor is None:
            self.executor = CommandExecutor(connect_timeout=config.settings.ssh_connect_timeout)

        self.show_header(title="Doctor", subtitle="Checking local tools and host access")

        self.check_tools()
        values = resolve_spec_values(config, {}, environment_spec_values())
        self.check_connectivity(values)

        self.console.print()
        self.console.print(self.table)
        self.console.print()

        if not self.healthy:
            raise SystemExit(1)


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ./hostdeploy.yml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
def doctor(config_path, verbose):
    """
    Check local tools and SSH access to the configured host
    """
    DoctorCommand(config_path=config_path, verbose=verbose).run()
