"""
Base Command Class

Abstract base for all hostdeploy CLI commands.
Provides common functionality and structure.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape

from hostdeploy.exceptions import HostDeployError
from hostdeploy.logger import DeployLogger
from hostdeploy.ui_components import show_header


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Header display
    - Error handling with exit codes
    """

    def __init__(self, verbose: bool = False, console: Optional[Console] = None):
        self.verbose = verbose
        self.console = console or Console()
        self.logger: Optional[DeployLogger] = None

    def init_logger(
        self, log_dir: Path, operation: str, secrets: Iterable[str] = ()
    ) -> DeployLogger:
        """
        Initialize command logger.

        Args:
            log_dir: Root directory for log files
            operation: Operation name used in the log file name
            secrets: Values the logger must mask

        Returns:
            DeployLogger instance
        """
        self.logger = DeployLogger(
            log_dir, operation, verbose=self.verbose, secrets=secrets, console_=self.console
        )
        return self.logger

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Show command header (skip in verbose mode)."""
        if not self.verbose:
            show_header(
                title=title,
                subtitle=subtitle,
                details=details,
                console=self.console,
            )

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗ {escape(message)}[/red]")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def _print_log_location(self) -> None:
        if self.logger:
            self.console.print(f"[dim]Logs saved to:[/dim] {escape(str(self.logger.log_path))}\n")

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            self.console.print(
                "[dim]A half-copied deployment directory is replaced on the next run.[/dim]"
            )
            self._print_log_location()
            raise SystemExit(130)
        except SystemExit:
            raise
        except HostDeployError as e:
            if self.logger:
                self.logger.log_error(e.message, context=e.context)
                self.console.print()
                self._print_log_location()
            else:
                self.console.print(f"\n[bold red]✗ {escape(e.message)}[/bold red]")
                if e.context:
                    self.console.print(f"  [color(208)]{escape(e.context)}[/color(208)]")
                self.console.print()
            raise SystemExit(1)
        except FileNotFoundError as e:
            self.console.print(f"\n[bold red]✗ File not found:[/bold red] {escape(str(e))}\n")
            if self.logger:
                self.logger.log_error(f"File not found: {e}")
            self._print_log_location()
            raise SystemExit(1)
        except PermissionError as e:
            self.console.print(f"\n[bold red]✗ Permission denied:[/bold red] {escape(str(e))}\n")
            if self.logger:
                self.logger.log_error(f"Permission error: {e}")
            self._print_log_location()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
