"""
Deployment Spec Model

The immutable input bundle for one run.
"""

import re
from dataclasses import dataclass, fields
from typing import Union

from hostdeploy.constants import MAX_PORT, MIN_PORT, REDACTED
from hostdeploy.exceptions import InputInvalidError
from hostdeploy.models.results import ValidationResult
from hostdeploy.utils import repo_name_from_url


FIELD_LABELS = {
    "repo_url": "Repository URL",
    "access_token": "Personal access token",
    "branch": "Branch name",
    "username": "Remote username",
    "host": "Remote host address",
    "key_path": "SSH key path",
    "app_port": "Application port",
}


# Would end or split the nginx server_name directive
UNSAFE_HOST_CHARS = re.compile(r"[\s;{}]")


@dataclass(frozen=True)
class DeploymentSpec:
    """Everything one deployment run needs. The token is never persisted."""

    repo_url: str
    access_token: str
    branch: str
    username: str
    host: str
    key_path: str
    app_port: Union[int, str]

    @property
    def repo_name(self) -> str:
        """Working copy / remote deployment directory name."""
        return repo_name_from_url(self.repo_url)

    @property
    def port(self) -> int:
        return int(self.app_port)

    @property
    def secrets(self) -> tuple:
        """Values that must never reach a log line or error message."""
        return (self.access_token,) if self.access_token else ()

    def validate(self) -> ValidationResult:
        """
        Check that every field is populated and the port is usable.

        Returns:
            ValidationResult with one error per bad field
        """
        result = ValidationResult(is_valid=True)

        for spec_field in fields(self):
            value = getattr(self, spec_field.name)
            if value is None or not str(value).strip():
                result.add_error(f"{FIELD_LABELS[spec_field.name]} is missing or empty")

        if str(self.app_port).strip():
            try:
                port = int(self.app_port)
            except (TypeError, ValueError):
                result.add_error(f"Application port must be a number, got '{self.app_port}'")
            else:
                if not MIN_PORT <= port <= MAX_PORT:
                    result.add_error(
                        f"Application port must be between {MIN_PORT} and {MAX_PORT}, got {port}"
                    )

        if self.host and self.host.strip() and UNSAFE_HOST_CHARS.search(self.host):
            result.add_error(f"Remote host address contains whitespace, ';', '{{' or '}}': {self.host!r}")

        if self.repo_url and self.repo_url.strip() and not self.repo_name:
            result.add_error(f"Cannot derive a repository name from '{self.repo_url}'")

        return result

    def require_valid(self) -> None:
        """
        Raises:
            InputInvalidError: If any field is empty or malformed
        """
        result = self.validate()
        if not result.is_valid:
            raise InputInvalidError(result.errors)

    def __repr__(self) -> str:
        token = REDACTED if self.access_token else ""
        return (
            f"DeploymentSpec(repo={self.repo_url}, branch={self.branch}, "
            f"server={self.username}@{self.host}, key={self.key_path}, "
            f"port={self.app_port}, token={token})"
        )

    __str__ = __repr__
