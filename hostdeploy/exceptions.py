"""
hostdeploy Exception Hierarchy

Clean exception hierarchy for consistent error handling across the pipeline.
Every exception carries the ErrorKind the pipeline engine records when it
turns the exception into a failed stage outcome.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Category of a fatal stage failure."""

    INPUT_INVALID = "input_invalid"
    CONNECTIVITY_FAILURE = "connectivity_failure"
    COMMAND_FAILURE = "command_failure"
    BUILD_FAILURE = "build_failure"
    CONFIG_SYNTAX_FAILURE = "config_syntax_failure"
    UNRECOGNIZED_PROJECT = "unrecognized_project"


class HostDeployError(Exception):
    """Base exception for all hostdeploy errors."""

    kind: ErrorKind = ErrorKind.COMMAND_FAILURE

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(HostDeployError):
    """Raised when configuration is invalid or missing."""

    kind = ErrorKind.INPUT_INVALID


class InputInvalidError(HostDeployError):
    """Raised when the deployment spec has empty or malformed fields."""

    kind = ErrorKind.INPUT_INVALID

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            "Deployment input is invalid",
            context="; ".join(errors),
        )


class ConnectivityError(HostDeployError):
    """Raised when the remote host cannot be reached or rejects the key."""

    kind = ErrorKind.CONNECTIVITY_FAILURE


class CommandFailureError(HostDeployError):
    """Raised when a command reached its target but exited non-zero."""

    kind = ErrorKind.COMMAND_FAILURE


class RepositorySyncError(CommandFailureError):
    """Raised when clone, fetch or checkout of the working copy fails."""

    pass


class BuildFailureError(HostDeployError):
    """Raised when the container image build fails."""

    kind = ErrorKind.BUILD_FAILURE


class ConfigSyntaxError(HostDeployError):
    """Raised when the proxy server rejects the generated configuration."""

    kind = ErrorKind.CONFIG_SYNTAX_FAILURE


class UnrecognizedProjectError(HostDeployError):
    """Raised when the working copy has neither a build nor a compose descriptor."""

    kind = ErrorKind.UNRECOGNIZED_PROJECT

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            "No Dockerfile or compose file found in the working copy",
            context=f"Path: {path}",
        )
