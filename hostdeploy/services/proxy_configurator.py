"""Proxy configurator - writes and activates the nginx rule for the app."""

import posixpath
from textwrap import dedent
from typing import List, Optional

from hostdeploy.constants import (
    APP_NAME,
    DEFAULT_PUBLIC_PORT,
    NGINX_ACTIVE_RULE_DIR,
    NGINX_BACKUP_DIR,
    NGINX_DEFAULT_SITE,
    NGINX_RULE_DIRS,
)
from hostdeploy.exceptions import ErrorKind
from hostdeploy.models.command import Command, Script
from hostdeploy.models.results import CommandResult, StageOutcome
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.services.executor import CommandExecutor, RunOptions


def render_server_block(public_address: str, port: int, public_port: int = DEFAULT_PUBLIC_PORT) -> str:
    """nginx server block forwarding public_port to 127.0.0.1:port."""
    return dedent(
        f"""\
        server {{
            listen {public_port};
            server_name {public_address};

            location / {{
                proxy_pass http://127.0.0.1:{port};
                proxy_set_header Host $host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
                proxy_set_header X-Forwarded-Proto $scheme;
            }}
        }}
        """
    )


class ProxyConfigurator:
    """
    Maintain exactly one nginx rule for the app identity.

    Old rules are removed from every directory nginx may load them from
    before the new one is written. The new rule must pass `nginx -t`
    before a reload; on failure the previous files are put back and nginx
    keeps serving the configuration it already has loaded.
    """

    STAGE = "ConfigureProxy"
    REMOVE_STAGE = "RemoveProxyRule"

    def __init__(
        self,
        executor: CommandExecutor,
        app_name: str = APP_NAME,
        public_port: int = DEFAULT_PUBLIC_PORT,
        timeout: Optional[int] = None,
    ):
        self.executor = executor
        self.app_name = app_name
        self.public_port = public_port
        self.timeout = timeout

    @property
    def rule_filename(self) -> str:
        return f"{self.app_name}.conf"

    @property
    def rule_path(self) -> str:
        """Path of the rule this configurator writes."""
        return posixpath.join(NGINX_ACTIVE_RULE_DIR, self.rule_filename)

    @property
    def rule_paths(self) -> List[str]:
        """Every location a rule for the app identity may live."""
        return [posixpath.join(directory, self.rule_filename) for directory in NGINX_RULE_DIRS]

    @staticmethod
    def backup_path(path: str) -> str:
        return posixpath.join(NGINX_BACKUP_DIR, path.strip("/").replace("/", "__"))

    def configure(self, target: RemoteTarget, public_address: str, port: int) -> StageOutcome:
        """
        Replace the app's proxy rule and reload nginx.

        Args:
            target: Remote host
            public_address: server_name for the rule
            port: Application port on the host loopback

        Returns:
            StageOutcome; a config rejected by nginx -t is CONFIG_SYNTAX_FAILURE
        """
        outcome = self._ensure_nginx(target)
        if outcome is not None:
            return outcome

        replaced = self.rule_paths + [NGINX_DEFAULT_SITE]

        # Back up, then clear every existing rule
        steps = [
            Command.of("mkdir", "-p", NGINX_BACKUP_DIR, sudo=True),
            Command.of("find", NGINX_BACKUP_DIR, "-mindepth", "1", "-delete", sudo=True),
        ]
        for path in replaced:
            steps.append(
                Command.of("cp", "-a", path, self.backup_path(path), sudo=True, tolerate_failure=True)
            )
            steps.append(Command.of("rm", "-f", path, sudo=True))
        steps.append(Command.of("mkdir", "-p", NGINX_ACTIVE_RULE_DIR, sudo=True))

        result = self.executor.run(target, Script.of(*steps), timeout=self.timeout)
        if result.is_failure:
            return self._failed(result, "Could not remove existing proxy rules")

        content = render_server_block(public_address, port, self.public_port)
        result = self.executor.run(
            target,
            Command.of("tee", self.rule_path, sudo=True),
            timeout=self.timeout,
            options=RunOptions(input=content),
        )
        if result.is_failure:
            return self._failed(result, f"Could not write {self.rule_path}")

        result = self.executor.run(target, Command.of("nginx", "-t", sudo=True), timeout=self.timeout)
        if result.is_failure:
            if result.connection_failed:
                return self._failed(result, "Lost connection during nginx -t")
            self._restore(target, replaced)
            return StageOutcome.failed(
                self.STAGE,
                ErrorKind.CONFIG_SYNTAX_FAILURE,
                f"nginx rejected the generated configuration; reload skipped ({result.describe_failure()})",
            )

        result = self.executor.run(
            target, Command.of("systemctl", "reload", "nginx", sudo=True), timeout=self.timeout
        )
        if result.is_failure:
            return self._failed(result, "nginx reload failed")

        return StageOutcome.succeeded(
            self.STAGE,
            f"Port {self.public_port} -> 127.0.0.1:{port}",
            details={"rule_path": self.rule_path, "config": content},
        )

    def remove(self, target: RemoteTarget) -> StageOutcome:
        """
        Delete the app's rule files and reload nginx, leaving it running.

        Args:
            target: Remote host

        Returns:
            StageOutcome for the cleanup stage
        """
        result = self.executor.run(
            target,
            Script.of(*[Command.of("rm", "-f", path, sudo=True) for path in self.rule_paths]),
            timeout=self.timeout,
        )
        if result.is_failure:
            return self._failed(result, "Could not remove proxy rules", stage=self.REMOVE_STAGE)

        result = self.executor.run(target, Command.of("nginx", "-t", sudo=True), timeout=self.timeout)
        if result.is_failure:
            if result.connection_failed:
                return self._failed(result, "Lost connection during nginx -t", stage=self.REMOVE_STAGE)
            return StageOutcome.failed(
                self.REMOVE_STAGE,
                ErrorKind.CONFIG_SYNTAX_FAILURE,
                f"nginx configuration invalid after removal; reload skipped ({result.describe_failure()})",
            )

        result = self.executor.run(
            target, Command.of("systemctl", "reload", "nginx", sudo=True), timeout=self.timeout
        )
        if result.is_failure:
            return self._failed(result, "nginx reload failed", stage=self.REMOVE_STAGE)

        return StageOutcome.succeeded(self.REMOVE_STAGE, f"Removed {self.rule_filename}")

    def _ensure_nginx(self, target: RemoteTarget) -> Optional[StageOutcome]:
        result = self.executor.run(target, Command.of("command", "-v", "nginx"), timeout=self.timeout)
        if result.is_success:
            return None
        if result.connection_failed:
            return self._failed(result, "Could not check for nginx")

        result = self.executor.run(
            target,
            Script.of(
                Command.of("apt-get", "update", "-y", sudo=True),
                Command.of("apt-get", "install", "-y", "nginx", sudo=True),
            ),
            timeout=self.timeout,
        )
        if result.is_failure:
            return self._failed(result, "nginx installation failed")
        return None

    def _restore(self, target: RemoteTarget, paths: List[str]) -> None:
        steps = [Command.of("rm", "-f", self.rule_path, sudo=True)]
        for path in paths:
            steps.append(
                Command.of("cp", "-a", self.backup_path(path), path, sudo=True, tolerate_failure=True)
            )
        self.executor.run(target, Script.of(*steps), timeout=self.timeout)

    def _failed(self, result: CommandResult, message: str, stage: Optional[str] = None) -> StageOutcome:
        return StageOutcome.failed(
            stage or self.STAGE,
            result.error_kind or ErrorKind.COMMAND_FAILURE,
            f"{message} ({result.describe_failure()})",
        )
