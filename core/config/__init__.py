"""Config package facade."""

from .loader import load_config
from .schema import (
    AnimationConfigBlock,
    ArchiveConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LabelConfigBlock,
    LoadedConfig,
    RuntimeConfig,
    ServerConfigBlock,
)
from .validate import validate_config

__all__ = [
    "AnimationConfigBlock",
    "ArchiveConfigBlock",
    "ConfigError",
    "DetectConfigBlock",
    "LabelConfigBlock",
    "LoadedConfig",
    "RuntimeConfig",
    "ServerConfigBlock",
    "load_config",
    "validate_config",
]
