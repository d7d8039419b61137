"""Command executor for running commands locally or on the remote host."""

import os
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from hostdeploy.constants import (
    SSH_CONNECTION_FAILURE_CODE,
    SSH_CONNECTION_TIMEOUT,
    TIMEOUT_EXIT_CODE,
)
from hostdeploy.models.command import Command, Script
from hostdeploy.models.results import CommandResult
from hostdeploy.models.ssh import ExecutionTarget, LocalTarget, RemoteTarget
from hostdeploy.utils import redact


@dataclass
class RunOptions:
    """Options for a single executor call."""

    input: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    secrets: tuple = ()


class CommandExecutor:
    """
    Runs commands on an execution target.

    Never raises for a non-zero exit: failure is reported in the
    CommandResult so callers can decide which failures they tolerate.
    Remote results distinguish a connection failure (ssh exit 255) from a
    failure of the command itself.
    """

    def __init__(
        self,
        connect_timeout: int = SSH_CONNECTION_TIMEOUT,
        default_timeout: Optional[int] = None,
    ):
        """
        Initialize executor.

        Args:
            connect_timeout: SSH ConnectTimeout in seconds
            default_timeout: Timeout for run() calls that do not pass one
        """
        self.connect_timeout = connect_timeout
        self.default_timeout = default_timeout

    def run(
        self,
        target: ExecutionTarget,
        command: Union[Command, Script],
        timeout: Optional[int] = None,
        options: Optional[RunOptions] = None,
    ) -> CommandResult:
        """
        Execute a command or script on target.

        Args:
            target: LocalTarget or RemoteTarget
            command: Structured command or multi-step script
            timeout: Seconds before the command is killed and reported failed
            options: stdin, extra environment and secrets to redact

        Returns:
            CommandResult with execution details
        """
        if options is None:
            options = RunOptions()
        if timeout is None:
            timeout = self.default_timeout

        secrets = tuple(command.secrets) + tuple(options.secrets)

        if isinstance(target, RemoteTarget):
            argv, stdin = self._remote_invocation(target, command, options)
            cwd = None
        else:
            argv, stdin, cwd = self._local_invocation(target, command, options)

        result = self._execute(argv, stdin, cwd, options.env, timeout, command.display())

        if isinstance(target, RemoteTarget) and result.exit_code == SSH_CONNECTION_FAILURE_CODE:
            result.connection_failed = True

        result.stdout = redact(result.stdout, secrets)
        result.stderr = redact(result.stderr, secrets)
        return result

    def probe(self, target: RemoteTarget, timeout: Optional[int] = None) -> CommandResult:
        """
        Dry connectivity check: non-interactive auth, short timeout.

        Any failure here means the host is unreachable or rejected the key,
        so it is always reported as a connection failure.

        Args:
            target: Remote host to probe
            timeout: Overall timeout in seconds (defaults to connect timeout + 5)

        Returns:
            CommandResult; connection_failed is set on any failure
        """
        if timeout is None:
            timeout = self.connect_timeout + 5

        argv = target.ssh_command_prefix(self.connect_timeout) + ["echo", "SSH_OK"]
        result = self._execute(argv, None, None, {}, timeout, f"ssh {target.connection_string} echo SSH_OK")
        if result.is_failure:
            result.connection_failed = True
        return result

    def transfer(
        self,
        target: RemoteTarget,
        source: Path,
        destination: str,
    ) -> CommandResult:
        """
        Copy a local directory to the remote host (scp -r).

        No timeout: the copy runs until done or until the process is
        interrupted.

        Args:
            target: Remote host
            source: Local directory
            destination: Remote directory (relative paths are under $HOME)

        Returns:
            CommandResult for the scp invocation
        """
        argv = target.scp_command_prefix(self.connect_timeout) + [
            str(source),
            target.remote_path(destination),
        ]
        result = self._execute(
            argv, None, None, {}, None, f"scp -r {source} {target.remote_path(destination)}"
        )
        if result.exit_code == SSH_CONNECTION_FAILURE_CODE:
            result.connection_failed = True
        return result

    def _remote_invocation(
        self, target: RemoteTarget, command: Union[Command, Script], options: RunOptions
    ) -> tuple[list[str], Optional[str]]:
        prefix = target.ssh_command_prefix(self.connect_timeout)
        if isinstance(command, Script):
            if options.input is not None:
                raise ValueError("A script already uses stdin; pass input to a single command")
            return prefix + ["bash", "-s"], command.render()
        return prefix + [command.render()], options.input

    def _local_invocation(
        self, target: LocalTarget, command: Union[Command, Script], options: RunOptions
    ) -> tuple[list[str], Optional[str], Optional[Path]]:
        cwd = Path(command.cwd) if command.cwd else target.cwd
        if isinstance(command, Script):
            return ["bash", "-s"], command.render(), cwd
        if command.tolerate_failure:
            return ["bash", "-c", command.render()], options.input, target.cwd
        return command.full_argv, options.input, cwd

    def _execute(
        self,
        argv: list[str],
        stdin: Optional[str],
        cwd: Optional[Path],
        env: Dict[str, str],
        timeout: Optional[int],
        display: str,
    ) -> CommandResult:
        start_time = time.time()
        run_env = None
        if env:
            run_env = {**os.environ, **env}

        try:
            completed = subprocess.run(
                argv,
                input=stdin,
                cwd=str(cwd) if cwd else None,
                env=run_env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"Command timed out after {timeout}s",
                duration_seconds=time.time() - start_time,
                command=display,
                timed_out=True,
            )
        except FileNotFoundError as e:
            # Program itself is missing (e.g. no ssh client installed)
            return CommandResult(
                exit_code=127,
                stderr=str(e),
                duration_seconds=time.time() - start_time,
                command=display,
            )

        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration_seconds=time.time() - start_time,
            command=display,
        )
