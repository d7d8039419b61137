"""Deployment validation service."""

from typing import List, Optional

import requests

from hostdeploy.constants import DEFAULT_PUBLIC_PORT
from hostdeploy.exceptions import ErrorKind
from hostdeploy.models.command import Command
from hostdeploy.models.results import StageOutcome
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.services.container_deployer import instance_names
from hostdeploy.services.executor import CommandExecutor


class DeploymentValidator:
    """Confirms the runtime, the app container and the public endpoint."""

    STAGE = "Validate"

    def __init__(
        self,
        executor: CommandExecutor,
        public_port: int = DEFAULT_PUBLIC_PORT,
        timeout: Optional[int] = None,
        http_timeout: int = 10,
        http=None,
    ):
        """
        Args:
            executor: Command executor for remote checks
            public_port: Port nginx listens on
            timeout: Timeout for each remote check
            http_timeout: Timeout for the external HTTP request
            http: requests-compatible object with get(); defaults to requests
        """
        self.executor = executor
        self.public_port = public_port
        self.timeout = timeout
        self.http_timeout = http_timeout
        self.http = http or requests

    def validate(self, target: RemoteTarget, app_name: str) -> StageOutcome:
        """
        Run all checks against the remote host.

        Runtime down or app not running are fatal; an unresponsive HTTP
        endpoint is only a warning because nginx and the app may still be
        settling.

        Args:
            target: Remote host
            app_name: Container / compose project name

        Returns:
            StageOutcome
        """
        result = self.executor.run(
            target, Command.of("systemctl", "is-active", "--quiet", "docker"), timeout=self.timeout
        )
        if result.is_failure:
            if result.connection_failed:
                return StageOutcome.failed(
                    self.STAGE, ErrorKind.CONNECTIVITY_FAILURE, "Lost connection to host"
                )
            return StageOutcome.failed(
                self.STAGE, ErrorKind.COMMAND_FAILURE, "Docker service is not running"
            )

        result = self.executor.run(
            target,
            Command.of(
                "docker", "ps",
                "--filter", f"name={app_name}",
                "--filter", "status=running",
                "--format", "{{.Names}}",
            ),
            timeout=self.timeout,
        )
        running = instance_names(result.stdout.split(), app_name) if result.is_success else []
        if not running:
            return StageOutcome.failed(
                self.STAGE,
                result.error_kind or ErrorKind.COMMAND_FAILURE,
                f"Container {app_name} is not running",
            )

        warnings = self._check_endpoints(target)
        return StageOutcome.succeeded(
            self.STAGE,
            f"Running: {', '.join(running)}",
            warnings=warnings,
            details={"containers": running},
        )

    def _check_endpoints(self, target: RemoteTarget) -> List[str]:
        warnings = []

        result = self.executor.run(
            target,
            Command.of("curl", "-fsS", "-o", "/dev/null", f"http://localhost:{self.public_port}"),
            timeout=self.timeout,
        )
        if result.is_failure:
            warnings.append(
                f"Endpoint not responding on the host ({result.describe_failure()})"
            )

        url = f"http://{target.host}:{self.public_port}/"
        try:
            response = self.http.get(url, timeout=self.http_timeout)
        except requests.RequestException as e:
            warnings.append(f"{url} not reachable from this machine: {e}")
        else:
            if response.status_code >= 500:
                warnings.append(f"{url} answered HTTP {response.status_code}")

        return warnings
