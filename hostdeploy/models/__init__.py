"""
hostdeploy Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .results import (
    CommandResult,
    ValidationResult,
    StageStatus,
    StageOutcome,
    PipelineReport,
)
from .ssh import (
    ExecutionTarget,
    LocalTarget,
    RemoteTarget,
)
from .command import (
    Command,
    Script,
)
from .spec import DeploymentSpec
from .project import (
    ProjectKind,
    detect_project_kind,
)

__all__ = [
    # Results
    "CommandResult",
    "ValidationResult",
    "StageStatus",
    "StageOutcome",
    "PipelineReport",
    # Targets
    "ExecutionTarget",
    "LocalTarget",
    "RemoteTarget",
    # Commands
    "Command",
    "Script",
    # Input
    "DeploymentSpec",
    # Project
    "ProjectKind",
    "detect_project_kind",
]
