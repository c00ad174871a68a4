"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    log_level: str = "info"
    opencv_num_threads: int = 0


@dataclass
class ServerConfigBlock:
    host: str = "0.0.0.0"
    port: int = 3000
    platter_dir: str = "public/platter"
    platter_route: str = "/platter/"
    index_path: str = ""


@dataclass
class ArchiveConfigBlock:
    base_url: str = "https://archive.org"
    timeout_s: float = 15.0


@dataclass
class LabelConfigBlock:
    processing_size: int = 640
    output_size: int = 600
    debug_stroke_width: int = 10
    placeholder_color: List[int] = field(default_factory=lambda: [26, 71, 49])
    placeholder_text_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    font_height_px: int = 36
    line_height: float = 1.2
    wrap_fraction: float = 0.8


@dataclass
class AnimationConfigBlock:
    rotation_step_deg: float = 0.72
    rotation_interval_ms: float = 1000.0 / 60.0
    flipbook_interval_ms: float = 50.0
    flipbook_length: int = 30


@dataclass
class DetectConfigBlock:
    impl: str = "hough"
    config_file: str = ""


@dataclass
class LoadedConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    server: ServerConfigBlock = field(default_factory=ServerConfigBlock)
    archive: ArchiveConfigBlock = field(default_factory=ArchiveConfigBlock)
    label: LabelConfigBlock = field(default_factory=LabelConfigBlock)
    animation: AnimationConfigBlock = field(default_factory=AnimationConfigBlock)
    detect: DetectConfigBlock = field(default_factory=DetectConfigBlock)
    detect_params: Dict[str, Any] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "ServerConfigBlock",
    "ArchiveConfigBlock",
    "LabelConfigBlock",
    "AnimationConfigBlock",
    "DetectConfigBlock",
    "LoadedConfig",
]
