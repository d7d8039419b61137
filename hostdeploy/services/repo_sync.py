"""Repository synchronizer - brings the local working copy to a branch."""

from pathlib import Path
from typing import Optional

from hostdeploy.exceptions import RepositorySyncError
from hostdeploy.models.command import Command
from hostdeploy.models.results import CommandResult
from hostdeploy.models.spec import DeploymentSpec
from hostdeploy.models.ssh import LocalTarget
from hostdeploy.services.executor import CommandExecutor, RunOptions
from hostdeploy.utils import authenticated_url, redact


class RepositorySynchronizer:
    """
    Clone or update the working copy for a DeploymentSpec.

    The access token only ever appears in the argv of a single git
    invocation: after a clone the origin remote is reset to the plain URL,
    and updates fetch from the authenticated URL without storing it.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        workdir: Path,
        timeout: Optional[int] = None,
        logger=None,
    ):
        """
        Initialize synchronizer.

        Args:
            executor: Command executor used for local git calls
            workdir: Directory that holds working copies
            timeout: Timeout for each git command
            logger: Optional DeployLogger
        """
        self.executor = executor
        self.workdir = Path(workdir)
        self.timeout = timeout
        self.logger = logger

    def working_copy_path(self, spec: DeploymentSpec) -> Path:
        return self.workdir / spec.repo_name

    def sync(self, spec: DeploymentSpec) -> Path:
        """
        Bring the working copy up to date and on spec.branch.

        Args:
            spec: Validated deployment spec

        Returns:
            Path to the working copy

        Raises:
            RepositorySyncError: If clone, fetch, checkout or fast-forward fails
        """
        local_path = self.working_copy_path(spec)
        auth_url = authenticated_url(spec.repo_url, spec.access_token)
        secrets = spec.secrets

        if (local_path / ".git").is_dir():
            self._log(f"Updating existing working copy at {local_path}")
            self._git(
                spec,
                "Git fetch failed",
                "-C", str(local_path), "fetch", "--prune", auth_url,
                "+refs/heads/*:refs/remotes/origin/*",
                secrets=secrets,
            )
            self._git(spec, "Branch checkout failed", "-C", str(local_path), "checkout", spec.branch)
            self._git(
                spec,
                "Git pull failed",
                "-C", str(local_path), "merge", "--ff-only", f"origin/{spec.branch}",
            )
        else:
            self.workdir.mkdir(parents=True, exist_ok=True)
            self._log(f"Cloning {spec.repo_url} into {local_path}")
            self._git(spec, "Git clone failed", "clone", auth_url, str(local_path), secrets=secrets)
            self._git(
                spec,
                "Could not reset origin URL",
                "-C", str(local_path), "remote", "set-url", "origin", spec.repo_url,
            )
            self._git(spec, "Branch checkout failed", "-C", str(local_path), "checkout", spec.branch)

        self._log(f"Working copy on branch {spec.branch}")
        return local_path

    def _git(self, spec: DeploymentSpec, failure: str, *args: str, secrets: tuple = ()) -> CommandResult:
        command = Command.of("git", *args, secrets=secrets)
        result = self.executor.run(
            LocalTarget(cwd=self.workdir),
            command,
            timeout=self.timeout,
            options=RunOptions(env={"GIT_TERMINAL_PROMPT": "0"}),
        )
        if result.is_failure:
            raise RepositorySyncError(
                failure,
                context=redact(result.describe_failure(), spec.secrets),
            )
        return result

    def _log(self, message: str) -> None:
        if self.logger:
            self.logger.log(message)
