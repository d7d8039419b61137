"""
Execution Target Models

Dataclass models describing where a command runs: the local machine or the
remote host reached over SSH.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from hostdeploy.constants import SSH_CONNECTION_TIMEOUT, SSH_DEFAULT_PORT


@dataclass(frozen=True)
class LocalTarget:
    """Run commands on the operator's machine."""

    cwd: Optional[Path] = None

    @property
    def is_remote(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"LocalTarget(cwd={self.cwd})"


@dataclass(frozen=True)
class RemoteTarget:
    """Run commands on the remote host over SSH with key authentication."""

    host: str
    user: str
    key_path: str
    port: int = SSH_DEFAULT_PORT

    @classmethod
    def for_spec(cls, spec) -> "RemoteTarget":
        """Build the remote target described by a DeploymentSpec."""
        return cls(host=spec.host, user=spec.username, key_path=spec.key_path)

    @property
    def is_remote(self) -> bool:
        return True

    @property
    def key_path_expanded(self) -> Path:
        """Get expanded key path (resolves ~)."""
        return Path(self.key_path).expanduser()

    @property
    def key_exists(self) -> bool:
        """Check if private key file exists."""
        return self.key_path_expanded.exists()

    @property
    def connection_string(self) -> str:
        """Get SSH connection string (user@host)."""
        return f"{self.user}@{self.host}"

    def ssh_options(self, connect_timeout: int = SSH_CONNECTION_TIMEOUT) -> list[str]:
        """Options shared by ssh and scp invocations."""
        return [
            "-i",
            str(self.key_path_expanded),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={connect_timeout}",
            "-o",
            "LogLevel=ERROR",
        ]

    def ssh_command_prefix(self, connect_timeout: int = SSH_CONNECTION_TIMEOUT) -> list[str]:
        """Get SSH command prefix for subprocess."""
        return (
            ["ssh", "-p", str(self.port)]
            + self.ssh_options(connect_timeout)
            + [self.connection_string]
        )

    def scp_command_prefix(self, connect_timeout: int = SSH_CONNECTION_TIMEOUT) -> list[str]:
        """Get recursive scp prefix for subprocess."""
        return ["scp", "-r", "-P", str(self.port)] + self.ssh_options(connect_timeout)

    def remote_path(self, path: str) -> str:
        """scp destination for a path on this host."""
        return f"{self.connection_string}:{path}"

    def __repr__(self) -> str:
        return f"RemoteTarget(host={self.host}, user={self.user})"


ExecutionTarget = Union[LocalTarget, RemoteTarget]
