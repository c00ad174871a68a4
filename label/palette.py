"""Dominant label color and a readable foreground for it."""

from __future__ import annotations

import logging
from typing import Sequence

import cv2
import numpy as np

from core.errors import ColorExtractionError

L = logging.getLogger("jukebox78.palette")

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def _linearize(c: float) -> float:
    c = float(c) / 255.0
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: Sequence[int]) -> float:
    r, g, b = (_linearize(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(l1: float, l2: float) -> float:
    lighter = max(l1, l2)
    darker = min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def find_contrast_color(color: Sequence[int]) -> tuple[int, int, int]:
    """White or black, whichever contrasts more with `color`. Ties pick black."""
    bg = relative_luminance(color)
    white_contrast = contrast_ratio(relative_luminance(WHITE), bg)
    black_contrast = contrast_ratio(relative_luminance(BLACK), bg)
    return WHITE if white_contrast > black_contrast else BLACK


def _candidate_pixels(
    image: np.ndarray, quality: int, alpha_threshold: int, white_threshold: int
) -> np.ndarray:
    if image is None or getattr(image, "size", 0) == 0:
        raise ColorExtractionError("empty image")
    if image.ndim == 2:
        bgr = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR).reshape(-1, 3)
        alpha = np.full(bgr.shape[0], 255, dtype=np.uint8)
    elif image.shape[2] == 4:
        flat = image.reshape(-1, 4)
        bgr, alpha = flat[:, :3], flat[:, 3]
    elif image.shape[2] == 3:
        bgr = image.reshape(-1, 3)
        alpha = np.full(bgr.shape[0], 255, dtype=np.uint8)
    else:
        raise ColorExtractionError(f"unsupported image shape {image.shape}")
    step = max(1, int(quality))
    bgr = bgr[::step]
    alpha = alpha[::step]
    keep = (alpha >= alpha_threshold) & ~np.all(bgr > white_threshold, axis=1)
    return bgr[keep]


def dominant_color(
    image: np.ndarray,
    *,
    clusters: int = 5,
    quality: int = 10,
    alpha_threshold: int = 125,
    white_threshold: int = 250,
) -> tuple[int, int, int]:
    """Most populous palette color of the opaque, non-white pixels, as RGB.

    Every `quality`-th pixel is sampled. Raises ColorExtractionError when no
    usable pixels remain or quantization fails.
    """
    pixels = _candidate_pixels(image, quality, alpha_threshold, white_threshold)
    if pixels.shape[0] == 0:
        raise ColorExtractionError("no opaque pixels to sample")

    colors, counts = np.unique(pixels, axis=0, return_counts=True)
    if colors.shape[0] <= clusters:
        b, g, r = colors[int(np.argmax(counts))]
        return int(r), int(g), int(b)

    data = pixels.astype(np.float32)
    criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 20, 1.0)
    cv2.setRNGSeed(12345)
    try:
        _compactness, labels, centers = cv2.kmeans(
            data, int(clusters), None, criteria, 3, cv2.KMEANS_PP_CENTERS
        )
    except cv2.error as e:
        raise ColorExtractionError(f"palette quantization failed: {e}") from e
    sizes = np.bincount(labels.reshape(-1), minlength=int(clusters))
    b, g, r = (int(round(float(v))) for v in centers[int(np.argmax(sizes))])
    return (
        min(255, max(0, r)),
        min(255, max(0, g)),
        min(255, max(0, b)),
    )


__all__ = [
    "BLACK",
    "WHITE",
    "contrast_ratio",
    "dominant_color",
    "find_contrast_color",
    "relative_luminance",
]
