"""Fit an arbitrary source image into the fixed processing square."""

from __future__ import annotations

import cv2
import numpy as np

from core.contracts import ProcessingFrame, round_half_up
from core.errors import InvalidImageError


def compute_scaled_size(width: int, height: int, processing_size: int) -> tuple[int, int, float]:
    """Return (scaled_w, scaled_h, scale_factor); the larger axis lands on processing_size."""
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"image has zero dimension: {width}x{height}")
    if processing_size <= 0:
        raise ValueError("processing_size must be > 0")
    if width > height:
        scale = processing_size / float(width)
        return processing_size, max(1, round_half_up(height * scale)), scale
    scale = processing_size / float(height)
    return max(1, round_half_up(width * scale)), processing_size, scale


def to_bgra(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
    channels = img.shape[2]
    if channels == 4:
        return img
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    if channels == 1:
        return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2BGRA)
    raise InvalidImageError(f"unsupported channel count: {channels}")


def decode_image(data: bytes) -> np.ndarray:
    if not data:
        raise InvalidImageError("empty image payload")
    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    if img is None or img.size == 0:
        raise InvalidImageError("image could not be decoded")
    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        raise InvalidImageError(f"unsupported pixel depth: {img.dtype}")
    return img


def normalize_image(source: np.ndarray, processing_size: int = 640) -> ProcessingFrame:
    """Draw the source, uniformly scaled, at the top-left of a transparent square."""
    if source is None or getattr(source, "size", 0) == 0:
        raise InvalidImageError("empty source image")
    height, width = source.shape[:2]
    scaled_w, scaled_h, scale = compute_scaled_size(width, height, processing_size)
    interp = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    resized = cv2.resize(to_bgra(source), (scaled_w, scaled_h), interpolation=interp)
    canvas = np.zeros((processing_size, processing_size, 4), dtype=np.uint8)
    canvas[:scaled_h, :scaled_w] = resized
    return ProcessingFrame(
        image=canvas,
        scale_factor=scale,
        scaled_width=scaled_w,
        scaled_height=scaled_h,
    )


__all__ = [
    "compute_scaled_size",
    "decode_image",
    "normalize_image",
    "round_half_up",
    "to_bgra",
]
