"""
hostdeploy Services Layer

One service per pipeline concern; each talks to hosts only through the
CommandExecutor.
"""

from .executor import CommandExecutor, RunOptions
from .repo_sync import RepositorySynchronizer
from .provisioner import RemoteProvisioner
from .container_deployer import ContainerDeployer
from .proxy_configurator import ProxyConfigurator
from .deployment_validator import DeploymentValidator

__all__ = [
    "CommandExecutor",
    "RunOptions",
    "RepositorySynchronizer",
    "RemoteProvisioner",
    "ContainerDeployer",
    "ProxyConfigurator",
    "DeploymentValidator",
]
