"""Remote provisioner - installs and starts the container runtime and proxy."""

import shlex
from typing import List, Optional

from hostdeploy.constants import (
    DEFAULT_COMPOSE_BINARY,
    DEFAULT_PACKAGES,
    DEFAULT_SERVICES,
)
from hostdeploy.models.command import Command, Script
from hostdeploy.models.results import StageOutcome
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.services.executor import CommandExecutor


class RemoteProvisioner:
    """
    Make sure the host has docker, the compose tool and nginx running.

    Every step is repeat-safe: apt update/install converge on their own,
    systemctl enable/start succeed when the unit is already enabled/active,
    and usermod -aG is a no-op for an existing member.
    """

    STAGE = "Provision"

    def __init__(
        self,
        executor: CommandExecutor,
        packages: Optional[List[str]] = None,
        services: Optional[List[str]] = None,
        compose_binary: str = DEFAULT_COMPOSE_BINARY,
        timeout: Optional[int] = None,
    ):
        self.executor = executor
        self.packages = list(packages or DEFAULT_PACKAGES)
        self.services = list(services or DEFAULT_SERVICES)
        self.compose_binary = compose_binary
        # "docker compose" (v2 plugin) is two argv words
        self.compose_argv = shlex.split(compose_binary)
        self.timeout = timeout

    def build_script(self, target: RemoteTarget) -> Script:
        """Provisioning steps for target, in order."""
        return Script.of(
            Command.of("apt-get", "update", "-y", sudo=True),
            Command.of(
                "env",
                "DEBIAN_FRONTEND=noninteractive",
                "apt-get",
                "install",
                "-y",
                *self.packages,
                sudo=True,
            ),
            Command.of("usermod", "-aG", "docker", target.user, sudo=True),
            Command.of("systemctl", "enable", *self.services, sudo=True),
            Command.of("systemctl", "start", *self.services, sudo=True),
        )

    def ensure(self, target: RemoteTarget) -> StageOutcome:
        """
        Install, enable and start the runtime services.

        Args:
            target: Remote host

        Returns:
            StageOutcome; any failure is fatal
        """
        result = self.executor.run(target, self.build_script(target), timeout=self.timeout)

        if result.is_failure:
            return StageOutcome.failed(
                self.STAGE,
                result.error_kind,
                f"Remote provisioning failed ({result.describe_failure()})",
            )

        versions = self._report_versions(target)
        return StageOutcome.succeeded(
            self.STAGE,
            f"Installed and started: {', '.join(self.services)}",
            details={"versions": versions},
        )

    def _report_versions(self, target: RemoteTarget) -> List[str]:
        script = Script.of(
            Command.of("docker", "--version"),
            Command.of(*self.compose_argv, "--version"),
            Command.of("nginx", "-v"),
            fail_fast=False,
        )
        result = self.executor.run(target, script, timeout=self.timeout)
        # nginx -v prints to stderr
        return [line.strip() for line in result.output.splitlines() if line.strip()]
