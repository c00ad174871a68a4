"""Mask, crop and resize the detected label circle."""

from __future__ import annotations

import cv2
import numpy as np

from core.contracts import Circle, LabelImage, ProcessingFrame
from core.errors import InvalidImageError
from utils.buffers import BufferScope

from .normalize import round_half_up

DEBUG_STROKE_BGR = (0, 255, 0)


def clamp_crop_rect(circle: Circle, frame_w: int, frame_h: int) -> tuple[int, int, int, int]:
    """Bounding square of the circle clipped to the frame, as (x, y, w, h).

    Near an edge the rect loses its square shape; the later resize stretches it.
    """
    side = round_half_up(circle.radius * 2)
    x = max(0, round_half_up(circle.x - circle.radius))
    y = max(0, round_half_up(circle.y - circle.radius))
    w = min(frame_w - x, side)
    h = min(frame_h - y, side)
    if w <= 0 or h <= 0:
        raise InvalidImageError(
            f"crop region empty for circle ({circle.x:.1f}, {circle.y:.1f}, r={circle.radius:.1f})"
        )
    return x, y, w, h


def circle_mask(shape: tuple[int, ...], circle: Circle) -> np.ndarray:
    mask = np.zeros(shape[:2], dtype=np.uint8)
    center = (round_half_up(circle.x), round_half_up(circle.y))
    cv2.circle(mask, center, round_half_up(circle.radius), 255, thickness=-1)
    return mask


def extract_label(
    frame: ProcessingFrame,
    circle: Circle,
    output_size: int = 600,
    scope: BufferScope | None = None,
) -> LabelImage:
    src = frame.image
    frame_h, frame_w = src.shape[:2]
    mask = circle_mask(src.shape, circle)
    masked = cv2.bitwise_and(src, src, mask=mask)
    x, y, w, h = clamp_crop_rect(circle, frame_w, frame_h)
    roi = masked[y : y + h, x : x + w]
    resized = cv2.resize(roi, (output_size, output_size), interpolation=cv2.INTER_AREA)
    placed = np.zeros((output_size, output_size, 4), dtype=np.uint8)
    # Copied at the origin, not offset to the center.
    placed[: resized.shape[0], : resized.shape[1]] = resized
    if scope is not None:
        for buf in (mask, masked, roi, resized, placed):
            scope.track(buf)
        placed = scope.keep(placed)
    return LabelImage(image=placed, detected=True)


def draw_debug_overlay(
    source: np.ndarray,
    circle: Circle,
    scale_factor: float,
    stroke_width: int = 10,
) -> np.ndarray:
    """Copy of the source with the detected circle stroked in source pixels."""
    if source.ndim == 2:
        overlay = cv2.cvtColor(source, cv2.COLOR_GRAY2BGR)
    elif source.shape[2] == 4:
        overlay = cv2.cvtColor(source, cv2.COLOR_BGRA2BGR)
    else:
        overlay = source.copy()
    src_circle = circle.scaled(scale_factor)
    cv2.circle(
        overlay,
        (round_half_up(src_circle.x), round_half_up(src_circle.y)),
        round_half_up(src_circle.radius),
        DEBUG_STROKE_BGR,
        thickness=int(stroke_width),
        lineType=cv2.LINE_AA,
    )
    return overlay


__all__ = ["circle_mask", "clamp_crop_rect", "draw_debug_overlay", "extract_label"]
