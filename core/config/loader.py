"""Read main_*.yaml plus the detector parameter file into LoadedConfig."""

from __future__ import annotations

import fnmatch
import os
from dataclasses import fields
from typing import Any

import yaml

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

_SECTIONS = {
    "runtime": RuntimeConfig,
    "server": ServerConfigBlock,
    "archive": ArchiveConfigBlock,
    "label": LabelConfigBlock,
    "animation": AnimationConfigBlock,
    "detect": DetectConfigBlock,
}

_MAIN_PATTERNS = ("main_*.yaml", "main_*.yml")


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = find_main_config(config_dir)
    doc = read_yaml_mapping(main_path)
    unknown = sorted(set(doc) - set(_SECTIONS))
    if unknown:
        raise ConfigError(f"Unknown section(s) {', '.join(unknown)} in {main_path}")

    blocks = {
        name: _section(cls, doc.get(name), name, main_path)
        for name, cls in _SECTIONS.items()
    }
    cfg = LoadedConfig(**blocks, paths={"main": main_path})

    detect_file = cfg.detect.config_file
    if detect_file:
        if not os.path.isabs(detect_file):
            detect_file = os.path.join(config_dir, detect_file)
        if not os.path.isfile(detect_file):
            raise ConfigError(f"Detect config not found: {detect_file}")
        cfg.detect_params = read_yaml_mapping(detect_file)
        cfg.paths["detect"] = detect_file
    return cfg


def find_main_config(config_dir: str) -> str:
    try:
        names = sorted(os.listdir(config_dir))
    except OSError as e:
        raise ConfigError(f"Config dir not readable: {config_dir} ({e})") from e
    found = [
        os.path.join(config_dir, n)
        for n in names
        if any(fnmatch.fnmatch(n, p) for p in _MAIN_PATTERNS)
    ]
    if not found:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(found) > 1:
        raise ConfigError(f"Expected exactly one main_*.yaml, found: {', '.join(found)}")
    return found[0]


def read_yaml_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _section(cls, data: Any, name: str, path: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"'{name}' must be a mapping in {path}")
    known = {f.name for f in fields(cls)}
    for key in data:
        if key not in known:
            raise ConfigError(f"Unknown field {name}.{key} in {path}")
    return cls(**data)


__all__ = ["find_main_config", "load_config", "read_yaml_mapping"]
