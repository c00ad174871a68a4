"""Composite the rotating label over the current platter frame."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Callable, Iterable

import cv2
import numpy as np

from core.contracts import LabelImage

L = logging.getLogger("jukebox78.animation.render")

FrameLoader = Callable[[str], "np.ndarray | None"]


def load_frame_file(path: str) -> np.ndarray | None:
    if not os.path.isfile(path):
        return None
    return cv2.imread(path, cv2.IMREAD_UNCHANGED)


def rotate_label(label: np.ndarray, angle_deg: float) -> np.ndarray:
    """Clockwise rotation about the center; corners stay transparent."""
    h, w = label.shape[:2]
    m = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -float(angle_deg), 1.0)
    return cv2.warpAffine(
        label,
        m,
        (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )


def alpha_blend(dst: np.ndarray, overlay: np.ndarray, x: int, y: int) -> None:
    """Blend a BGRA overlay onto a BGR canvas in place, clipped to the canvas."""
    oh, ow = overlay.shape[:2]
    dh, dw = dst.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(dw, x + ow), min(dh, y + oh)
    if x1 <= x0 or y1 <= y0:
        return
    part = overlay[y0 - y : y1 - y, x0 - x : x1 - x]
    if part.shape[2] == 3:
        dst[y0:y1, x0:x1] = part
        return
    alpha = part[:, :, 3:4].astype(np.float32) / 255.0
    region = dst[y0:y1, x0:x1].astype(np.float32)
    blended = part[:, :, :3].astype(np.float32) * alpha + region * (1.0 - alpha)
    dst[y0:y1, x0:x1] = blended.astype(np.uint8)


class PlatterFrameCache:
    """Loads platter frames once; missing frames are remembered as None."""

    def __init__(self, loader: FrameLoader = load_frame_file):
        self._loader = loader
        self._frames: dict[str, np.ndarray | None] = {}

    def get(self, ref: str) -> np.ndarray | None:
        if ref not in self._frames:
            frame = self._loader(ref)
            if frame is None:
                L.debug("platter frame missing: %s", ref)
            self._frames[ref] = frame
        return self._frames[ref]

    def preload(self, refs: Iterable[str]) -> int:
        return sum(1 for ref in refs if self.get(ref) is not None)

    def prefetch(self, refs: Iterable[str]) -> asyncio.Future:
        """Fire-and-forget preload in the default executor."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(None, self.preload, list(refs))

    def __len__(self) -> int:
        return len(self._frames)


async def settle_prefetch(fut: asyncio.Future) -> int | None:
    """Wait for a prefetch future. A loader failure is logged; frames then load on demand."""
    try:
        return await fut
    except Exception:
        L.warning("platter prefetch failed", exc_info=True)
        return None


class FrameCompositor:
    """AnimationSink that keeps the latest angle and platter frame for compose()."""

    def __init__(
        self,
        label: LabelImage,
        *,
        canvas_size: int = 600,
        label_fraction: float = 0.42,
        frames: PlatterFrameCache | None = None,
        background_bgr: tuple[int, int, int] = (18, 18, 18),
    ):
        self.canvas_size = int(canvas_size)
        self.background_bgr = background_bgr
        self.frames = frames if frames is not None else PlatterFrameCache()
        self.angle = 0.0
        self.frame_index = -1
        self._frame_ref: str | None = None
        side = max(1, int(round(self.canvas_size * float(label_fraction))))
        self._label = cv2.resize(label.image, (side, side), interpolation=cv2.INTER_AREA)
        self.on_rotation: Callable[[float], None] | None = None

    def set_rotation(self, angle_deg: float) -> None:
        self.angle = float(angle_deg)
        if self.on_rotation is not None:
            self.on_rotation(self.angle)

    def show_platter_frame(self, index: int, ref: str) -> None:
        self.frame_index = int(index)
        self._frame_ref = ref

    def _base(self) -> np.ndarray:
        size = self.canvas_size
        canvas = np.empty((size, size, 3), dtype=np.uint8)
        canvas[:] = self.background_bgr
        frame = self.frames.get(self._frame_ref) if self._frame_ref else None
        if frame is not None:
            if frame.ndim == 2:
                frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
            if frame.shape[:2] != (size, size):
                frame = cv2.resize(frame, (size, size), interpolation=cv2.INTER_AREA)
            alpha_blend(canvas, frame, 0, 0)
        return canvas

    def compose(self) -> np.ndarray:
        canvas = self._base()
        rotated = rotate_label(self._label, self.angle)
        offset = (self.canvas_size - rotated.shape[0]) // 2
        alpha_blend(canvas, rotated, offset, offset)
        return canvas


__all__ = [
    "FrameCompositor",
    "PlatterFrameCache",
    "alpha_blend",
    "load_frame_file",
    "rotate_label",
    "settle_prefetch",
]
