"""
Pipeline Engine

Runs the deployment stages in a fixed order and stops at the first fatal
outcome. Each stage gets the run context, returns a StageOutcome, and the
engine appends it to the PipelineReport.

Forward:  CollectInput -> SyncRepo -> VerifyProject -> ProbeConnectivity
          -> Provision -> Deploy -> ConfigureProxy -> Validate
Cleanup:  CollectInput -> ProbeConnectivity -> RemoveContainer
          -> RemoveProxyRule

Runs are single-threaded and target one host. Two concurrent runs against
the same host are not guarded against.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from hostdeploy.constants import APP_NAME
from hostdeploy.core.config_loader import Settings
from hostdeploy.exceptions import ErrorKind, HostDeployError
from hostdeploy.models.project import ProjectKind, detect_project_kind
from hostdeploy.models.results import PipelineReport, StageOutcome
from hostdeploy.models.spec import DeploymentSpec
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.services import (
    CommandExecutor,
    ContainerDeployer,
    DeploymentValidator,
    ProxyConfigurator,
    RemoteProvisioner,
    RepositorySynchronizer,
)
from hostdeploy.utils import redact


@dataclass
class RunContext:
    """State handed from one stage to the next within a run."""

    spec: DeploymentSpec
    target: Optional[RemoteTarget] = None
    source_path: Optional[Path] = None
    project_kind: Optional[ProjectKind] = None


@dataclass(frozen=True)
class Stage:
    name: str
    action: Callable[[RunContext], StageOutcome]


class PipelineEngine:
    """Sequences the deployment components into stages."""

    FORWARD = "forward"
    CLEANUP = "cleanup"

    def __init__(
        self,
        executor: CommandExecutor,
        synchronizer: RepositorySynchronizer,
        provisioner: RemoteProvisioner,
        deployer: ContainerDeployer,
        proxy: ProxyConfigurator,
        validator: DeploymentValidator,
        app_name: str = APP_NAME,
        reporter=None,
    ):
        """
        Args:
            executor: Executor used for the connectivity probe
            synchronizer: Local repository synchronizer
            provisioner: Remote package/service provisioner
            deployer: Container deployer
            proxy: nginx configurator
            validator: Post-deploy validator
            app_name: Fixed application identity
            reporter: Optional object with step(name) and record(outcome)
        """
        self.executor = executor
        self.synchronizer = synchronizer
        self.provisioner = provisioner
        self.deployer = deployer
        self.proxy = proxy
        self.validator = validator
        self.app_name = app_name
        self.reporter = reporter

    def forward_stages(self) -> List[Stage]:
        return [
            Stage("CollectInput", self._collect_input),
            Stage("SyncRepo", self._sync_repo),
            Stage("VerifyProject", self._verify_project),
            Stage("ProbeConnectivity", self._probe_connectivity),
            Stage("Provision", self._provision),
            Stage("Deploy", self._deploy),
            Stage("ConfigureProxy", self._configure_proxy),
            Stage("Validate", self._validate),
        ]

    def cleanup_stages(self) -> List[Stage]:
        return [
            Stage("CollectInput", self._collect_input),
            Stage("ProbeConnectivity", self._probe_connectivity),
            Stage("RemoveContainer", self._remove_container),
            Stage("RemoveProxyRule", self._remove_proxy_rule),
        ]

    def run(self, spec: DeploymentSpec, cleanup: bool = False) -> PipelineReport:
        """
        Run the forward or the cleanup pipeline.

        Args:
            spec: Deployment input; validated by the first stage
            cleanup: Run the cleanup pipeline instead of deploying

        Returns:
            PipelineReport with one outcome per stage that ran
        """
        mode = self.CLEANUP if cleanup else self.FORWARD
        stages = self.cleanup_stages() if cleanup else self.forward_stages()
        report = PipelineReport(mode=mode)
        context = RunContext(spec=spec)

        for stage in stages:
            if self.reporter:
                self.reporter.step(stage.name)

            outcome = self._run_stage(stage, context)
            report.append(outcome)

            if self.reporter:
                self.reporter.record(outcome)

            if outcome.is_fatal:
                break

        return report

    def _run_stage(self, stage: Stage, context: RunContext) -> StageOutcome:
        started_at = datetime.now()
        try:
            outcome = stage.action(context)
        except HostDeployError as e:
            outcome = StageOutcome.failed(stage.name, e.kind, redact(str(e), context.spec.secrets))

        # Components name their outcomes; the engine's stage name is canonical
        outcome.stage = stage.name
        outcome.started_at = started_at
        outcome.finished_at = datetime.now()
        return outcome

    # Stages

    def _collect_input(self, context: RunContext) -> StageOutcome:
        context.spec.require_valid()
        context.target = RemoteTarget.for_spec(context.spec)
        return StageOutcome.succeeded(
            "CollectInput", f"{context.spec.repo_name}@{context.spec.branch} -> {context.target.connection_string}"
        )

    def _sync_repo(self, context: RunContext) -> StageOutcome:
        context.source_path = self.synchronizer.sync(context.spec)
        return StageOutcome.succeeded(
            "SyncRepo",
            f"{context.source_path} on {context.spec.branch}",
            details={"path": str(context.source_path)},
        )

    def _verify_project(self, context: RunContext) -> StageOutcome:
        context.project_kind = detect_project_kind(context.source_path)
        if context.project_kind == ProjectKind.UNRECOGNIZED:
            return StageOutcome.failed(
                "VerifyProject",
                ErrorKind.UNRECOGNIZED_PROJECT,
                f"No Dockerfile or docker-compose.yml found in {context.source_path}",
            )
        return StageOutcome.succeeded("VerifyProject", f"Project kind: {context.project_kind.value}")

    def _probe_connectivity(self, context: RunContext) -> StageOutcome:
        result = self.executor.probe(context.target)
        if result.is_failure:
            return StageOutcome.failed(
                "ProbeConnectivity",
                ErrorKind.CONNECTIVITY_FAILURE,
                f"Cannot reach {context.target.connection_string} ({result.describe_failure()})",
            )
        return StageOutcome.succeeded("ProbeConnectivity", "SSH connection is successful")

    def _provision(self, context: RunContext) -> StageOutcome:
        return self.provisioner.ensure(context.target)

    def _deploy(self, context: RunContext) -> StageOutcome:
        return self.deployer.deploy(
            context.target,
            self.app_name,
            context.project_kind,
            context.spec.port,
            context.source_path,
        )

    def _configure_proxy(self, context: RunContext) -> StageOutcome:
        return self.proxy.configure(context.target, context.spec.host, context.spec.port)

    def _validate(self, context: RunContext) -> StageOutcome:
        return self.validator.validate(context.target, self.app_name)

    def _remove_container(self, context: RunContext) -> StageOutcome:
        return self.deployer.teardown(context.target, self.app_name)

    def _remove_proxy_rule(self, context: RunContext) -> StageOutcome:
        return self.proxy.remove(context.target)


def build_engine(settings: Settings, logger=None) -> PipelineEngine:
    """
    Wire the real components from settings.

    Args:
        settings: Loaded Settings
        logger: Optional DeployLogger used as reporter and component log

    Returns:
        PipelineEngine
    """
    executor = CommandExecutor(
        connect_timeout=settings.ssh_connect_timeout,
        default_timeout=settings.command_timeout,
    )
    return PipelineEngine(
        executor=executor,
        synchronizer=RepositorySynchronizer(
            executor, settings.workdir, timeout=settings.command_timeout, logger=logger
        ),
        provisioner=RemoteProvisioner(
            executor,
            packages=settings.packages,
            compose_binary=settings.compose_binary,
            timeout=settings.command_timeout,
        ),
        deployer=ContainerDeployer(
            executor,
            deployments_dir=settings.deployments_dir,
            compose_binary=settings.compose_binary,
            timeout=settings.command_timeout,
            build_timeout=settings.build_timeout,
            logger=logger,
        ),
        proxy=ProxyConfigurator(
            executor, public_port=settings.public_port, timeout=settings.command_timeout
        ),
        validator=DeploymentValidator(
            executor, public_port=settings.public_port, timeout=settings.command_timeout
        ),
        reporter=logger,
    )
