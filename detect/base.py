import importlib
import logging
from typing import Any, Callable, Dict, List, Protocol, Sequence, Tuple

import cv2
import numpy as np
from core.contracts import Circle, NULL_CIRCLE
from core.errors import DetectionEmpty

L = logging.getLogger("jukebox78.detection")


class CircleDetector(Protocol):
    def detect(self, frame: np.ndarray, scope: Any = None) -> List[Circle]:
        """Return candidate circles in frame coordinates (possibly empty)."""
        ...


DetectorFactory = Callable[[dict], CircleDetector]

_detectors: Dict[str, DetectorFactory] = {}


def register_detector(name: str):
    """Class decorator: make a detector constructible by its config name."""

    def decorator(factory: DetectorFactory) -> DetectorFactory:
        _detectors[name] = factory
        return factory

    return decorator


def available_detectors() -> List[str]:
    return sorted(_detectors)


def create_detector(name: str, params: dict | None = None) -> CircleDetector:
    # Detector modules register on import; configs may name one not imported yet.
    import_err: Exception | None = None
    if name not in _detectors:
        try:
            importlib.import_module(f"{__package__ or 'detect'}.{name}")
        except ImportError as e:
            import_err = e
    if name not in _detectors:
        hint = f" (import failed: {import_err})" if import_err else ""
        raise ValueError(
            f"Unknown detector impl '{name}'. "
            f"Available: {', '.join(available_detectors()) or 'none'}{hint}"
        )
    return _detectors[name](params or {})


def select_largest_circle(circles: Sequence[Circle]) -> Circle:
    """Pick the strictly-largest radius; the first maximal candidate wins ties.

    Raises DetectionEmpty when there is nothing to choose from.
    """
    best = NULL_CIRCLE
    for circle in circles:
        if circle.radius > best.radius:
            best = circle
    if best.is_null:
        raise DetectionEmpty("no circles detected")
    return best


def encode_image_png(img: np.ndarray, compression: int = 3) -> Tuple[bytes, str]:
    """
    Encode image (BGR or BGRA) to PNG bytes, keeping alpha.
    Returns (bytes, content_type).
    """
    params = [int(cv2.IMWRITE_PNG_COMPRESSION), int(compression)]
    ok, buf = cv2.imencode(".png", img.astype(np.uint8, copy=False), params)
    if not ok:
        raise RuntimeError("opencv_imencode_failed")
    return buf.tobytes(), "image/png"


def encode_image_jpeg(img: np.ndarray, quality: int = 80) -> Tuple[bytes, str]:
    bgr = img.astype(np.uint8, copy=False)
    if bgr.ndim == 3 and bgr.shape[2] == 4:
        bgr = cv2.cvtColor(bgr, cv2.COLOR_BGRA2BGR)
    ok, buf = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("opencv_imencode_failed")
    return buf.tobytes(), "image/jpeg"


__all__ = [
    "CircleDetector",
    "available_detectors",
    "register_detector",
    "create_detector",
    "select_largest_circle",
    "encode_image_png",
    "encode_image_jpeg",
]
