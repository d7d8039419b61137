"""
Result Models

Dataclass models for command results, stage outcomes and the pipeline record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from hostdeploy.exceptions import ErrorKind


@dataclass
class CommandResult:
    """Result of a command execution on the local machine or the remote host."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    command: str = ""
    timed_out: bool = False
    connection_failed: bool = False

    @property
    def is_success(self) -> bool:
        """Exit code 0 is the only success, whatever the output says."""
        return self.exit_code == 0

    @property
    def is_failure(self) -> bool:
        """Check if command failed."""
        return self.exit_code != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        """Classify a failure as connectivity or command failure."""
        if self.is_success:
            return None
        if self.connection_failed:
            return ErrorKind.CONNECTIVITY_FAILURE
        return ErrorKind.COMMAND_FAILURE

    def describe_failure(self) -> str:
        """Short human-readable reason for a failed result."""
        if self.timed_out:
            return f"timed out after {self.duration_seconds:.0f}s"
        detail = self.stderr.strip() or self.stdout.strip()
        if detail:
            detail = detail.splitlines()[-1]
            return f"exit code {self.exit_code}: {detail}"
        return f"exit code {self.exit_code}"

    def __repr__(self) -> str:
        return f"CommandResult(exit_code={self.exit_code}, duration={self.duration_seconds:.2f}s)"


@dataclass
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        """Add an error to the validation result."""
        self.errors.append(error)
        self.is_valid = False

    def __repr__(self) -> str:
        return f"ValidationResult(valid={self.is_valid}, errors={len(self.errors)})"


class StageStatus(Enum):
    """Status of a pipeline stage."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageOutcome:
    """Outcome of one pipeline stage. FAILED outcomes are fatal."""

    stage: str
    status: StageStatus
    reason: str = ""
    error: Optional[ErrorKind] = None
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def succeeded(
        cls,
        stage: str,
        reason: str = "",
        warnings: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "StageOutcome":
        return cls(
            stage=stage,
            status=StageStatus.SUCCEEDED,
            reason=reason,
            warnings=list(warnings or []),
            details=dict(details or {}),
        )

    @classmethod
    def failed(
        cls,
        stage: str,
        error: ErrorKind,
        reason: str,
        warnings: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "StageOutcome":
        return cls(
            stage=stage,
            status=StageStatus.FAILED,
            reason=reason,
            error=error,
            warnings=list(warnings or []),
            details=dict(details or {}),
        )

    @classmethod
    def skipped(cls, stage: str, reason: str) -> "StageOutcome":
        return cls(stage=stage, status=StageStatus.SKIPPED, reason=reason)

    @property
    def is_fatal(self) -> bool:
        return self.status == StageStatus.FAILED

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "stage": self.stage,
            "status": self.status.value,
            "reason": self.reason,
            "error": self.error.value if self.error else None,
            "warnings": list(self.warnings),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def __repr__(self) -> str:
        return f"StageOutcome(stage={self.stage}, status={self.status.value})"


@dataclass
class PipelineReport:
    """Append-only, ordered record of stage outcomes for one run."""

    mode: str
    outcomes: List[StageOutcome] = field(default_factory=list)

    def append(self, outcome: StageOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def failed_stage(self) -> Optional[StageOutcome]:
        """The fatal outcome that halted the run, if any."""
        for outcome in self.outcomes:
            if outcome.is_fatal:
                return outcome
        return None

    @property
    def succeeded(self) -> bool:
        return bool(self.outcomes) and self.failed_stage is None

    @property
    def warnings(self) -> List[str]:
        """All warnings, prefixed with the stage that raised them."""
        return [
            f"{outcome.stage}: {warning}"
            for outcome in self.outcomes
            for warning in outcome.warnings
        ]

    @property
    def stage_names(self) -> List[str]:
        return [outcome.stage for outcome in self.outcomes]

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "succeeded": self.succeeded,
            "stages": [outcome.to_dict() for outcome in self.outcomes],
        }

    def __repr__(self) -> str:
        return f"PipelineReport(mode={self.mode}, stages={len(self.outcomes)}, succeeded={self.succeeded})"
