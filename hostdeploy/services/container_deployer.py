"""Container deployer - ships the working copy and brings the app up."""

import posixpath
import shlex
from pathlib import Path
from typing import List, Optional

from hostdeploy.constants import (
    DEFAULT_COMPOSE_BINARY,
    DEFAULT_DEPLOYMENTS_DIR,
    LOG_TAIL_LINES,
)
from hostdeploy.exceptions import ErrorKind
from hostdeploy.models.command import Command, Script
from hostdeploy.models.project import ProjectKind
from hostdeploy.models.results import CommandResult, StageOutcome
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.services.executor import CommandExecutor

# stderr fragments docker prints when the resource is already gone
ABSENT_MARKERS = ("No such container", "No such object", "is not running")


def instance_names(names: List[str], app_name: str) -> List[str]:
    """
    Containers that belong to the app identity.

    Matches the plain container (app_name) and compose containers, which are
    named <project>_<service>_<n> (compose v1) or <project>-<service>-<n>.
    """
    return [
        name
        for name in names
        if name == app_name
        or name.startswith(f"{app_name}_")
        or name.startswith(f"{app_name}-")
    ]


class ContainerDeployer:
    """
    Deploy the application as a single container or a compose project.

    Idempotency comes from destroy-then-recreate: the remote deployment
    directory is wiped before each transfer and every previous container of
    the app identity is stopped and removed before a new one starts.
    """

    STAGE = "Deploy"
    TEARDOWN_STAGE = "RemoveContainer"

    def __init__(
        self,
        executor: CommandExecutor,
        deployments_dir: str = DEFAULT_DEPLOYMENTS_DIR,
        compose_binary: str = DEFAULT_COMPOSE_BINARY,
        timeout: Optional[int] = None,
        build_timeout: Optional[int] = None,
        logger=None,
    ):
        self.executor = executor
        self.deployments_dir = deployments_dir
        self.compose_binary = compose_binary
        # "docker compose" (v2 plugin) is two argv words
        self.compose_argv = shlex.split(compose_binary)
        self.timeout = timeout
        self.build_timeout = build_timeout
        self.logger = logger

    def remote_dir(self, source_path: Path) -> str:
        """Deterministic remote directory for a working copy."""
        return posixpath.join(self.deployments_dir, Path(source_path).name)

    def deploy(
        self,
        target: RemoteTarget,
        app_name: str,
        project_kind: ProjectKind,
        port: int,
        source_path: Path,
    ) -> StageOutcome:
        """
        Transfer the source tree and start the application.

        Args:
            target: Remote host
            app_name: Container / compose project name
            project_kind: Strategy to use
            port: Port bound on host and container side
            source_path: Local working copy

        Returns:
            StageOutcome; smoke-check problems are warnings only
        """
        if project_kind == ProjectKind.UNRECOGNIZED:
            return StageOutcome.failed(
                self.STAGE,
                ErrorKind.UNRECOGNIZED_PROJECT,
                f"No Dockerfile or compose file in {source_path}",
            )

        remote_dir = self.remote_dir(source_path)

        # 1. Fresh copy of the source tree
        result = self.executor.run(
            target,
            Script.of(
                Command.of("rm", "-rf", remote_dir),
                Command.of("mkdir", "-p", self.deployments_dir),
            ),
            timeout=self.timeout,
        )
        if result.is_failure:
            return self._failed(result, "Could not reset remote deployment directory")

        self._log(f"Transferring {source_path} to {target.connection_string}:{remote_dir}")
        result = self.executor.transfer(target, Path(source_path), self.deployments_dir + "/")
        if result.is_failure:
            return self._failed(result, "File transfer failed")

        # 2. Previous instance
        failure = self._remove_instances(target, app_name)
        if failure:
            return failure
        if project_kind == ProjectKind.COMPOSITION:
            result = self.executor.run(
                target,
                Command.of(*self.compose_argv, "-p", app_name, "down", "--remove-orphans", cwd=remote_dir),
                timeout=self.timeout,
            )
            if result.is_failure and not self._is_absent(result):
                return self._failed(result, "Could not stop previous composition")

        # 3. Start
        if project_kind == ProjectKind.SINGLE_IMAGE:
            outcome = self._run_single_image(target, app_name, port, remote_dir)
        else:
            outcome = self._run_composition(target, app_name, remote_dir)
        if outcome is not None:
            return outcome

        details = {
            "remote_dir": remote_dir,
            "logs": self._recent_logs(target, app_name, project_kind, remote_dir),
        }

        # 4. Smoke check; the app may still be booting
        warnings = []
        result = self.executor.run(
            target,
            Command.of("curl", "-sSI", f"http://localhost:{port}"),
            timeout=self.timeout,
        )
        if result.is_failure:
            warnings.append(
                f"Application on port {port} not reachable yet ({result.describe_failure()})"
            )
        else:
            details["headers"] = result.stdout.strip()

        return StageOutcome.succeeded(
            self.STAGE,
            f"{app_name} started as {project_kind.value}",
            warnings=warnings,
            details=details,
        )

    def teardown(self, target: RemoteTarget, app_name: str) -> StageOutcome:
        """
        Remove every container of the app identity and prune networks.

        Args:
            target: Remote host
            app_name: Container / compose project name

        Returns:
            StageOutcome; absent containers count as success
        """
        failure = self._remove_instances(target, app_name, stage=self.TEARDOWN_STAGE)
        if failure:
            return failure

        result = self.executor.run(
            target, Command.of("docker", "network", "prune", "-f"), timeout=self.timeout
        )
        warnings = []
        if result.is_failure:
            warnings.append(f"Network prune failed ({result.describe_failure()})")

        return StageOutcome.succeeded(
            self.TEARDOWN_STAGE, f"No containers left for {app_name}", warnings=warnings
        )

    def _run_single_image(
        self, target: RemoteTarget, app_name: str, port: int, remote_dir: str
    ) -> Optional[StageOutcome]:
        self._log(f"Building image {app_name}")
        result = self.executor.run(
            target,
            Command.of("docker", "build", "-t", app_name, ".", cwd=remote_dir),
            timeout=self.build_timeout,
        )
        if result.is_failure:
            if result.connection_failed:
                return self._failed(result, "Docker build interrupted")
            return StageOutcome.failed(
                self.STAGE,
                ErrorKind.BUILD_FAILURE,
                f"Docker build failed ({result.describe_failure()})",
            )

        result = self.executor.run(
            target,
            Command.of(
                "docker", "run", "-d", "--name", app_name, "-p", f"{port}:{port}", app_name
            ),
            timeout=self.timeout,
        )
        if result.is_failure:
            return self._failed(result, "Container failed to start")
        return None

    def _run_composition(
        self, target: RemoteTarget, app_name: str, remote_dir: str
    ) -> Optional[StageOutcome]:
        self._log(f"Starting composition {app_name}")
        result = self.executor.run(
            target,
            Command.of(*self.compose_argv, "-p", app_name, "up", "-d", "--build", cwd=remote_dir),
            timeout=self.build_timeout,
        )
        if result.is_failure:
            return self._failed(result, "Compose up failed")
        return None

    def _remove_instances(
        self, target: RemoteTarget, app_name: str, stage: Optional[str] = None
    ) -> Optional[StageOutcome]:
        stage = stage or self.STAGE
        result = self.executor.run(
            target,
            Command.of("docker", "ps", "-a", "--format", "{{.Names}}"),
            timeout=self.timeout,
        )
        if result.is_failure:
            return self._failed(result, "Could not list containers", stage=stage)

        names = instance_names(result.stdout.split(), app_name)
        if not names:
            return None

        self._log(f"Removing previous instance(s): {', '.join(names)}")
        for action in ("stop", "rm"):
            result = self.executor.run(
                target, Command.of("docker", action, *names), timeout=self.timeout
            )
            if result.is_failure and not self._is_absent(result):
                return self._failed(result, f"docker {action} failed", stage=stage)
        return None

    def _recent_logs(
        self, target: RemoteTarget, app_name: str, project_kind: ProjectKind, remote_dir: str
    ) -> str:
        if project_kind == ProjectKind.SINGLE_IMAGE:
            command = Command.of("docker", "logs", app_name, "--tail", LOG_TAIL_LINES)
        else:
            command = Command.of(
                *self.compose_argv, "-p", app_name, "logs", f"--tail={LOG_TAIL_LINES}", cwd=remote_dir
            )
        result = self.executor.run(target, command, timeout=self.timeout)
        return result.output

    @staticmethod
    def _is_absent(result: CommandResult) -> bool:
        return not result.connection_failed and any(
            marker in result.output for marker in ABSENT_MARKERS
        )

    def _failed(self, result: CommandResult, message: str, stage: Optional[str] = None) -> StageOutcome:
        return StageOutcome.failed(
            stage or self.STAGE,
            result.error_kind or ErrorKind.COMMAND_FAILURE,
            f"{message} ({result.describe_failure()})",
        )

    def _log(self, message: str) -> None:
        if self.logger:
            self.logger.log(message)
