"""Value checks run after loading; every failure names the offending key."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig


def validate_config(cfg: LoadedConfig) -> None:
    _number("runtime.opencv_num_threads", cfg.runtime.opencv_num_threads, int, lo=0)

    _number("server.port", cfg.server.port, int, lo=1, hi=65535)
    if not str(cfg.server.platter_route or "").startswith("/"):
        raise ConfigError("server.platter_route must start with '/'")

    if not str(cfg.archive.base_url or "").startswith(("http://", "https://")):
        raise ConfigError("archive.base_url must be an http(s) URL")
    _number("archive.timeout_s", cfg.archive.timeout_s, float, lo=0.1)

    label = cfg.label
    for key in ("processing_size", "output_size", "debug_stroke_width", "font_height_px"):
        _positive_int(f"label.{key}", getattr(label, key))
    _rgb("label.placeholder_color", label.placeholder_color)
    _rgb("label.placeholder_text_color", label.placeholder_text_color)
    _number("label.line_height", label.line_height, float, lo=0.1)
    _number("label.wrap_fraction", label.wrap_fraction, float, lo=0.05, hi=1.0)

    anim = cfg.animation
    _number("animation.rotation_step_deg", anim.rotation_step_deg, float)
    _number("animation.rotation_interval_ms", anim.rotation_interval_ms, float, lo=1.0)
    _number("animation.flipbook_interval_ms", anim.flipbook_interval_ms, float, lo=1.0)
    _positive_int("animation.flipbook_length", anim.flipbook_length)

    params = cfg.detect_params or {}
    _positive_int("detect.median_blur_k", params.get("median_blur_k", 5))
    _number("detect.dp", params.get("dp", 1.0), float, lo=0.1)
    _number("detect.min_dist", params.get("min_dist", 200), float, lo=1.0)
    min_r = _number("detect.min_radius", params.get("min_radius", 100), int, lo=0)
    max_r = _number("detect.max_radius", params.get("max_radius", 350), int, lo=0)
    if max_r and max_r < min_r:
        raise ConfigError("detect.max_radius must be >= detect.min_radius")


def _number(name: str, value: Any, kind: type, *, lo=None, hi=None):
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        v = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be {'an integer' if kind is int else 'a number'}") from e
    if lo is not None and v < lo:
        raise ConfigError(f"{name} must be >= {lo:g}")
    if hi is not None and v > hi:
        raise ConfigError(f"{name} must be <= {hi:g}")
    return v


def _positive_int(name: str, value: Any) -> int:
    v = _number(name, value, int)
    if v <= 0:
        raise ConfigError(f"{name} must be > 0")
    return v


def _rgb(name: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ConfigError(f"{name} must be a 3-element [r, g, b] list")
    for i, channel in enumerate(value):
        _number(f"{name}[{i}]", channel, int, lo=0, hi=255)


__all__ = ["validate_config"]
