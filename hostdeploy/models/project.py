"""
Project Kind Model

Classifies a working copy by the container descriptor it ships.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from hostdeploy.constants import BUILD_DESCRIPTOR, COMPOSE_DESCRIPTORS


class ProjectKind(Enum):
    """How the application is brought up on the host."""

    SINGLE_IMAGE = "single_image"
    COMPOSITION = "composition"
    UNRECOGNIZED = "unrecognized"


def find_compose_file(path: Path) -> Optional[Path]:
    """Return the first compose descriptor present in path, if any."""
    for name in COMPOSE_DESCRIPTORS:
        candidate = path / name
        if candidate.is_file():
            return candidate
    return None


def detect_project_kind(path: Path) -> ProjectKind:
    """
    Inspect a working copy.

    A Dockerfile wins over a compose file when both exist.
    """
    path = Path(path)
    if (path / BUILD_DESCRIPTOR).is_file():
        return ProjectKind.SINGLE_IMAGE
    if find_compose_file(path) is not None:
        return ProjectKind.COMPOSITION
    return ProjectKind.UNRECOGNIZED
