"""
Logging system for hostdeploy
Provides real-time logging to files with clean console output
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, TextIO

from rich.console import Console
from rich.markup import escape

from hostdeploy.constants import (
    LOG_DATE_FORMAT,
    LOG_TIME_FORMAT,
    REMOTE_LOG_DATE_FORMAT,
)
from hostdeploy.models.command import Command
from hostdeploy.models.results import PipelineReport, StageOutcome, StageStatus
from hostdeploy.services.executor import RunOptions
from hostdeploy.utils import redact

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class DeployLogger:
    """
    Manages logging for deployment runs
    - Appends every line to a local log file in real-time
    - Shows clean progress UI in console (unless verbose)
    - Masks credentials in everything it writes
    """

    def __init__(
        self,
        log_dir: Path,
        operation: str,
        verbose: bool = False,
        secrets: Iterable[str] = (),
        console_: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            log_dir: Root log directory
            operation: Operation name (e.g., 'deploy', 'cleanup')
            verbose: If True, show all output in console
            secrets: Values to mask in every log line
            console_: Console to print to (defaults to the module console)
        """
        self.operation = operation
        self.verbose = verbose
        self.secrets = tuple(s for s in secrets if s)
        self.console = console_ or console
        self.log_file: Optional[TextIO] = None
        self.current_step = ""
        self.has_errors = False

        # Structure: logs/{date}/{time}_{operation}.log
        now = datetime.now()
        logs_dir = Path(log_dir) / now.strftime(LOG_DATE_FORMAT)
        logs_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = logs_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"

        # Append-only, line buffered for real-time output
        self.log_file = open(self.log_path, "a", buffering=1)

        self._write_log_header()

    def add_secret(self, secret: str) -> None:
        """Mask another value from now on."""
        if secret and secret not in self.secrets:
            self.secrets = self.secrets + (secret,)

    def _clean(self, text: str) -> str:
        return redact(text, self.secrets)

    def _write(self, text: str) -> None:
        if self.log_file:
            self.log_file.write(self._clean(text))
            self.log_file.flush()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
hostdeploy Log
{"=" * 80}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self._write(header)

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        message = self._clean(message)
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._write(f"[{timestamp}] [{level}] {message}\n")

        if self.verbose:
            if level == "ERROR":
                self.console.print(f"[red]{escape(message)}[/red]")
            elif level == "WARNING":
                self.console.print(f"[yellow]{escape(message)}[/yellow]")
            elif level == "DEBUG":
                self.console.print(f"[dim]{escape(message)}[/dim]")
            else:
                self.console.print(escape(message))

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output. Always written to the file, shown in the
        console only when verbose.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        clean_output = self._clean(ANSI_ESCAPE.sub("", output))
        for line in clean_output.splitlines():
            self._write(f"  [{stream}] {line}\n")

        if self.verbose:
            self.console.print(escape(clean_output))

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., command that failed)
        """
        self.has_errors = True
        error = self._clean(error)
        context = self._clean(context) if context else None

        error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
        if context:
            error_block += f"\nContext: {context}\n"
        error_block += f"{'!' * 80}\n\n"
        self._write(error_block)

        if not self.verbose:
            self.console.print()

        self.console.print(f"[bold red]✗ {escape(error)}[/bold red]")
        if context:
            self.console.print(f"  [color(208)]{escape(context)}[/color(208)]")

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step and not self.verbose:
            self.console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")

        if not self.verbose:
            self.console.print(f"[color(214)]▶[/color(214)] [white]{escape(step_name)}[/white]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")

        if not self.verbose:
            self.console.print(f"  [dim]✓ {escape(self._clean(message))}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")

        if not self.verbose:
            self.console.print(f"  [yellow]⚠[/yellow] [dim]{escape(self._clean(message))}[/dim]")

    def record(self, outcome: StageOutcome):
        """Write one stage outcome: the audit trail of the run."""
        for warning in outcome.warnings:
            self.warning(warning)

        for key in ("versions", "logs"):
            value = outcome.details.get(key)
            if value:
                text = "\n".join(value) if isinstance(value, list) else str(value)
                self.log_output(text, key)

        if outcome.status == StageStatus.SUCCEEDED:
            self.success(outcome.reason or f"{outcome.stage} completed")
        elif outcome.status == StageStatus.SKIPPED:
            self.log(f"Skipped: {outcome.reason}", "INFO")
        else:
            self.log_error(
                f"{outcome.stage} failed: {outcome.reason}",
                context=outcome.error.value if outcome.error else None,
            )

    def summary_lines(self, report: PipelineReport) -> list[str]:
        """One line per stage, for the remote log."""
        stamp = datetime.now().isoformat(timespec="seconds")
        lines = [f"[{stamp}] hostdeploy {report.mode} run"]
        for outcome in report.outcomes:
            line = f"[{stamp}] {outcome.stage}: {outcome.status.value}"
            if outcome.reason:
                line += f" - {outcome.reason}"
            lines.append(line)
            lines.extend(f"[{stamp}] {outcome.stage}: warning - {w}" for w in outcome.warnings)
        lines.append(
            f"[{stamp}] {'Deployment completed successfully' if report.succeeded else 'Run failed'}"
        )
        return [self._clean(line) for line in lines]

    def append_remote(self, executor, target, report: PipelineReport) -> bool:
        """
        Append the run summary to deploy_<YYYYMMDD>.log in the remote home.

        Args:
            executor: CommandExecutor
            target: RemoteTarget
            report: Finished pipeline report

        Returns:
            True if the remote log was written
        """
        remote_log = f"deploy_{datetime.now().strftime(REMOTE_LOG_DATE_FORMAT)}.log"
        content = "\n".join(self.summary_lines(report)) + "\n"
        result = executor.run(
            target,
            Command.of("tee", "-a", remote_log),
            options=RunOptions(input=content, secrets=self.secrets),
        )
        if result.is_failure:
            self.warning(f"Could not append to remote log {remote_log} ({result.describe_failure()})")
            return False
        self.log(f"Remote log appended: ~/{remote_log}")
        return True

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self._write(footer)
            self.log_file.close()
            self.log_file = None

