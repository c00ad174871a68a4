import logging
from typing import Any, List

import cv2
import numpy as np

from core.contracts import Circle
from utils.buffers import BufferScope

from .base import register_detector

L = logging.getLogger("jukebox78.detection.hough")


def _odd_k(k: Any) -> int:
    try:
        v = int(float(k))
    except (TypeError, ValueError):
        v = 5
    return max(3, v) | 1


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img.copy()
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)


@register_detector("hough")
class HoughCircleDetector:
    """Median blur, grayscale, then a gradient Hough circle transform.

    Parameters are in processing-frame pixels. The input frame is never
    written to.
    """

    def __init__(self, params: dict):
        p = params or {}
        self.median_blur_k = _odd_k(p.get("median_blur_k", 5))
        self.dp = float(p.get("dp", 1.0))
        self.min_dist = float(p.get("min_dist", 200))
        self.param1 = float(p.get("param1", 150))
        self.param2 = float(p.get("param2", 50))
        self.min_radius = int(p.get("min_radius", 100))
        self.max_radius = int(p.get("max_radius", 350))
        self._validate()

    def _validate(self):
        if self.dp <= 0:
            raise ValueError("detect dp must be > 0")
        if self.min_dist <= 0:
            raise ValueError("detect min_dist must be > 0")
        if self.min_radius < 0 or self.max_radius < 0:
            raise ValueError("detect min_radius/max_radius must be >= 0")
        if self.max_radius and self.max_radius < self.min_radius:
            raise ValueError("detect max_radius must be >= min_radius")

    def detect(self, frame: np.ndarray, scope: BufferScope | None = None) -> List[Circle]:
        if frame is None or getattr(frame, "size", 0) == 0:
            return []
        blur = cv2.medianBlur(frame, self.median_blur_k)
        gray = to_gray(blur)
        if scope is not None:
            scope.track(blur)
            scope.track(gray)
        found = cv2.HoughCircles(
            gray,
            cv2.HOUGH_GRADIENT,
            self.dp,
            self.min_dist,
            param1=self.param1,
            param2=self.param2,
            minRadius=self.min_radius,
            maxRadius=self.max_radius,
        )
        if found is None:
            L.debug("hough: no candidates")
            return []
        if scope is not None:
            scope.track(found)
        circles = [
            Circle(float(x), float(y), float(r)) for x, y, r in found.reshape(-1, 3)
        ]
        L.debug("hough: %d candidates", len(circles))
        return circles


__all__ = ["HoughCircleDetector", "to_gray"]
