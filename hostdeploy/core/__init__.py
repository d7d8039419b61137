"""
hostdeploy Core

Configuration loading and the pipeline engine.
"""

from .config_loader import DeployConfig, Settings, load_config
from .pipeline import PipelineEngine, build_engine

__all__ = [
    "DeployConfig",
    "Settings",
    "load_config",
    "PipelineEngine",
    "build_engine",
]
