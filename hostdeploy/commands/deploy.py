"""Deploy command - run the forward or cleanup pipeline"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
from rich.console import Console
from rich.markup import escape

from hostdeploy.base import BaseCommand
from hostdeploy.core.config_loader import (
    DeployConfig,
    Settings,
    environment_spec_values,
    load_config,
    resolve_spec_values,
)
from hostdeploy.core.pipeline import PipelineEngine, build_engine
from hostdeploy.models.results import PipelineReport
from hostdeploy.models.spec import FIELD_LABELS, DeploymentSpec
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.ui_components import stage_table

# Stages after which the host is known to be reachable
REACHED_HOST_STAGE = "ProbeConnectivity"


@dataclass
class DeployOptions:
    """Options for deploy command."""

    cleanup: bool = False
    config_path: Optional[Path] = None
    overrides: Dict[str, Any] = field(default_factory=dict)
    interactive: bool = True


class DeployCommand(BaseCommand):
    """
    Deploy (or clean up) the application on the remote host.

    Features:
    - Input from config file, environment, options or prompts
    - Stage-by-stage progress and a final stage table
    - Local log file plus a summary appended to the remote log
    """

    def __init__(
        self,
        options: DeployOptions,
        verbose: bool = False,
        console: Optional[Console] = None,
        engine_factory: Callable[[Settings, Any], PipelineEngine] = build_engine,
    ):
        """
        Initialize deploy command.

        Args:
            options: DeployOptions with configuration
            verbose: Whether to show verbose output
            console: Console to print to
            engine_factory: Builds the pipeline engine from settings and logger
        """
        super().__init__(verbose=verbose, console=console)
        self.options = options
        self.engine_factory = engine_factory

    def collect_spec(self, config: DeployConfig) -> DeploymentSpec:
        """
        Assemble the DeploymentSpec, prompting for anything missing.

        Validation is left to the pipeline's CollectInput stage.
        """
        values = resolve_spec_values(
            config, self.options.overrides, environment_spec_values()
        )

        for name, label in FIELD_LABELS.items():
            if values.get(name) not in (None, ""):
                continue
            if not self.options.interactive:
                values[name] = ""
                continue
            values[name] = click.prompt(
                f"Please enter your {label}",
                default="",
                show_default=False,
                hide_input=(name == "access_token"),
            )

        return DeploymentSpec(**{name: values[name] for name in FIELD_LABELS})

    def execute(self) -> None:
        """Execute deploy command."""
        config = load_config(self.options.config_path)
        settings = config.settings
        spec = self.collect_spec(config)

        operation = "cleanup" if self.options.cleanup else "deploy"
        self.show_header(
            title="Cleanup" if self.options.cleanup else "Deploy",
            details={
                "Repository": spec.repo_url,
                "Branch": spec.branch,
                "Server": f"{spec.username}@{spec.host}",
                "SSH Key": spec.key_path,
                "App Port": spec.app_port,
            },
        )

        # Invalid input fails in CollectInput without touching the filesystem
        logger = None
        if spec.validate().is_valid:
            logger = self.init_logger(settings.log_dir, operation, secrets=spec.secrets)
        engine = self.engine_factory(settings, logger)

        report = engine.run(spec, cleanup=self.options.cleanup)

        if logger and settings.remote_log and self._host_reached(report):
            logger.append_remote(engine.executor, RemoteTarget.for_spec(spec), report)

        self._print_summary(report)

        if not report.succeeded:
            raise SystemExit(report.exit_code)

    @staticmethod
    def _host_reached(report: PipelineReport) -> bool:
        return any(
            outcome.stage == REACHED_HOST_STAGE and not outcome.is_fatal
            for outcome in report.outcomes
        )

    def _print_summary(self, report: PipelineReport) -> None:
        self.console.print()
        self.console.print(stage_table(report))

        if report.warnings:
            self.console.print()
            for warning in report.warnings:
                self.print_warning(warning)

        self.console.print()
        if report.succeeded:
            message = (
                "Cleanup completed."
                if report.mode == PipelineEngine.CLEANUP
                else "Deployment completed successfully!"
            )
            self.print_success(message)
        else:
            failed = report.failed_stage
            self.print_error(f"Stage {failed.stage} failed: {failed.reason}")

        if self.logger:
            self.console.print(f"\n[dim]Logs saved to:[/dim] {escape(str(self.logger.log_path))}\n")


@click.command()
@click.option("--cleanup", is_flag=True, help="Remove the deployed app and its proxy rule instead of deploying")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ./hostdeploy.yml)",
)
@click.option("--repo", "repo_url", help="Git repository URL (https)")
@click.option("--branch", "-b", help="Branch to deploy (default: main)")
@click.option("--user", "-u", "username", help="Remote SSH username")
@click.option("--host", "-H", help="Remote server IP address or hostname")
@click.option("--key", "-k", "key_path", help="Path to SSH private key (e.g. ~/.ssh/id_rsa)")
@click.option("--port", "-p", "app_port", help="Application internal port")
@click.option("--no-input", is_flag=True, help="Never prompt; missing values fail validation")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
def deploy(cleanup, config_path, repo_url, branch, username, host, key_path, app_port, no_input, verbose):
    """
    Deploy the application to the remote host

    Clones or updates the repository, provisions docker and nginx on the
    host, starts the app as a container (Dockerfile) or compose project
    (docker-compose.yml), and points nginx on port 80 at it.

    The access token is read from HOSTDEPLOY_TOKEN or prompted for; it is
    never written to disk or logs.

    \b
    Examples:
      # Deploy, prompting for anything not configured
      hostdeploy deploy

      # Fully specified
      hostdeploy deploy --repo https://github.com/acme/app.git -b main \\
          -u ubuntu -H 203.0.113.7 -k ~/.ssh/id_rsa -p 3000

      # Undo a deployment
      hostdeploy deploy --cleanup
    """
    options = DeployOptions(
        cleanup=cleanup,
        config_path=config_path,
        overrides={
            "repo_url": repo_url,
            "branch": branch,
            "username": username,
            "host": host,
            "key_path": key_path,
            "app_port": app_port,
        },
        interactive=not no_input,
    )
    cmd = DeployCommand(options, verbose=verbose)
    cmd.run()
