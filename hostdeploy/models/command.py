"""
Command Models

Structured commands for the executor. Arguments are kept as argv and only
quoted (with shlex) when a remote shell has to see them, so values such as
paths, ports or branch names are never spliced into shell text.
"""

import shlex
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from hostdeploy.utils import redact


@dataclass(frozen=True)
class Command:
    """A single program invocation."""

    argv: tuple
    sudo: bool = False
    cwd: Optional[str] = None
    tolerate_failure: bool = False
    secrets: tuple = field(default=(), repr=False, compare=False)

    @classmethod
    def of(
        cls,
        *argv: Union[str, int],
        sudo: bool = False,
        cwd: Optional[str] = None,
        tolerate_failure: bool = False,
        secrets: Sequence[str] = (),
    ) -> "Command":
        """Build a command from positional argv items."""
        if not argv:
            raise ValueError("Command needs at least a program name")
        return cls(
            argv=tuple(str(a) for a in argv),
            sudo=sudo,
            cwd=cwd,
            tolerate_failure=tolerate_failure,
            secrets=tuple(secrets),
        )

    @property
    def full_argv(self) -> list[str]:
        """argv including the sudo prefix."""
        return (["sudo"] if self.sudo else []) + list(self.argv)

    def render(self) -> str:
        """Render as one shell-safe line for a remote shell."""
        line = shlex.join(self.full_argv)
        if self.cwd:
            line = f"cd {shlex.quote(self.cwd)} && {line}"
        if self.tolerate_failure:
            line = f"{line} || true"
        return line

    def display(self) -> str:
        """Rendered line with secrets masked, safe for logs and errors."""
        return redact(self.render(), self.secrets)

    def __str__(self) -> str:
        return self.display()


@dataclass(frozen=True)
class Script:
    """
    An ordered list of commands executed as one logical remote command.

    Rendered as a bash script body and fed to `bash -s` over stdin. With
    fail_fast the script stops at the first failing step (set -e); steps
    marked tolerate_failure never stop it.
    """

    steps: tuple
    fail_fast: bool = True
    cwd: Optional[str] = None

    @classmethod
    def of(cls, *steps: Command, fail_fast: bool = True, cwd: Optional[str] = None) -> "Script":
        return cls(steps=tuple(steps), fail_fast=fail_fast, cwd=cwd)

    @property
    def secrets(self) -> tuple:
        collected = []
        for step in self.steps:
            collected.extend(step.secrets)
        return tuple(collected)

    def render(self) -> str:
        lines = []
        if self.fail_fast:
            lines.append("set -e")
        if self.cwd:
            lines.append(f"cd {shlex.quote(self.cwd)}")
        lines.extend(step.render() for step in self.steps)
        return "\n".join(lines) + "\n"

    def display(self) -> str:
        """One-line summary with secrets masked."""
        return redact("; ".join(step.render() for step in self.steps), self.secrets)

    def __str__(self) -> str:
        return self.display()
