"""Configuration loading for hostdeploy runs"""

import os
import shlex
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import dotenv_values

from hostdeploy.constants import (
    DEFAULT_BRANCH,
    DEFAULT_BUILD_TIMEOUT,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_COMPOSE_BINARY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DEPLOYMENTS_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_PACKAGES,
    DEFAULT_PUBLIC_PORT,
    ENV_PREFIX,
    MAX_PORT,
    MIN_PORT,
    SSH_CONNECTION_TIMEOUT,
)
from hostdeploy.exceptions import ConfigurationError

# DeploymentSpec field -> environment variable suffix
SPEC_ENV_KEYS = {
    "repo_url": "REPO_URL",
    "access_token": "TOKEN",
    "branch": "BRANCH",
    "username": "USERNAME",
    "host": "HOST",
    "key_path": "KEY_PATH",
    "app_port": "APP_PORT",
}


@dataclass
class Settings:
    """Tunables for a run. Everything has a default."""

    workdir: Path = field(default_factory=Path.cwd)
    deployments_dir: str = DEFAULT_DEPLOYMENTS_DIR
    public_port: int = DEFAULT_PUBLIC_PORT
    ssh_connect_timeout: int = SSH_CONNECTION_TIMEOUT
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    build_timeout: int = DEFAULT_BUILD_TIMEOUT
    packages: List[str] = field(default_factory=lambda: list(DEFAULT_PACKAGES))
    compose_binary: str = DEFAULT_COMPOSE_BINARY
    log_dir: Path = field(default_factory=lambda: Path(DEFAULT_LOG_DIR))
    remote_log: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "Settings":
        """
        Build settings from the `settings:` section of the config file.

        Args:
            data: Raw mapping
            base_dir: Directory relative paths are resolved against

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown settings: {', '.join(unknown)}",
                context=f"Allowed: {', '.join(sorted(known))}",
            )

        settings = cls(**dict(data))
        base_dir = base_dir or Path.cwd()

        settings.workdir = Path(settings.workdir).expanduser()
        if not settings.workdir.is_absolute():
            settings.workdir = base_dir / settings.workdir
        settings.log_dir = Path(settings.log_dir).expanduser()
        if not settings.log_dir.is_absolute():
            settings.log_dir = settings.workdir / settings.log_dir

        settings._validate()
        return settings

    def _validate(self) -> None:
        for name in ("public_port",):
            value = getattr(self, name)
            if not isinstance(value, int) or not MIN_PORT <= value <= MAX_PORT:
                raise ConfigurationError(f"settings.{name} must be a port number, got {value!r}")

        for name in ("ssh_connect_timeout", "command_timeout", "build_timeout"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"settings.{name} must be a positive integer, got {value!r}")

        if not self.packages:
            raise ConfigurationError("settings.packages must list at least one package")

        if not shlex.split(self.compose_binary or ""):
            raise ConfigurationError("settings.compose_binary must name a command")

        if not self.deployments_dir or self.deployments_dir.strip("/") == "":
            raise ConfigurationError("settings.deployments_dir must name a directory")


@dataclass
class DeployConfig:
    """Loaded configuration file: settings plus default spec values."""

    settings: Settings
    spec_values: Dict[str, Any] = field(default_factory=dict)
    config_path: Optional[Path] = None


def load_config(config_path: Optional[Path] = None) -> DeployConfig:
    """
    Load hostdeploy.yml.

    A missing default file is fine (all defaults); a missing explicit file
    is an error.

    Args:
        config_path: Explicit config file, or None for ./hostdeploy.yml

    Returns:
        DeployConfig

    Raises:
        ConfigurationError: If the file is unreadable or invalid
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path.cwd() / DEFAULT_CONFIG_FILE

    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {path}")
        return DeployConfig(settings=Settings.from_dict({}))

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}", context=str(e))

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping")

    spec_values = raw.get("spec") or {}
    if "access_token" in spec_values:
        raise ConfigurationError(
            "access_token must not be stored in the config file",
            context=f"Set {ENV_PREFIX}TOKEN or enter it when prompted",
        )
    unknown = sorted(set(spec_values) - set(SPEC_ENV_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown spec fields in {path}: {', '.join(unknown)}")

    settings = Settings.from_dict(raw.get("settings") or {}, base_dir=path.parent)
    return DeployConfig(settings=settings, spec_values=dict(spec_values), config_path=path)


def environment_spec_values(
    env: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> Dict[str, str]:
    """
    Spec values from HOSTDEPLOY_* variables, .env first, process env wins.

    Args:
        env: Environment mapping (defaults to os.environ)
        env_file: .env file to read (defaults to ./.env)
    """
    merged: Dict[str, Optional[str]] = {}
    env_file = env_file or Path.cwd() / ".env"
    if env_file.exists():
        merged.update(dotenv_values(env_file))
    merged.update(os.environ if env is None else env)

    values = {}
    for spec_field, suffix in SPEC_ENV_KEYS.items():
        value = merged.get(f"{ENV_PREFIX}{suffix}")
        if value:
            values[spec_field] = value
    return values


def resolve_spec_values(
    config: DeployConfig,
    overrides: Mapping[str, Any],
    env_values: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Merge spec values: command-line options > environment > config file.

    The branch falls back to "main". Fields nobody supplied are absent from
    the result so the caller can prompt for them.
    """
    values: Dict[str, Any] = {}
    for source in (config.spec_values, env_values, overrides):
        for key, value in source.items():
            if value is not None and str(value) != "":
                values[key] = value
    values.setdefault("branch", DEFAULT_BRANCH)
    return values
