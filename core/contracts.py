"""Data contracts for the label pipeline, archive records and animation."""

import math
from dataclasses import dataclass, field
from typing import Any


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching browser Math.round."""
    return int(math.floor(float(value) + 0.5))


@dataclass(frozen=True, slots=True)
class Circle:
    x: float = 0.0
    y: float = 0.0
    radius: float = 0.0

    @property
    def is_null(self) -> bool:
        return self.radius <= 0

    def scaled(self, factor: float) -> "Circle":
        """Return the circle divided by `factor` (processing -> source coords)."""
        return Circle(self.x / factor, self.y / factor, self.radius / factor)


NULL_CIRCLE = Circle()


@dataclass(slots=True)
class ProcessingFrame:
    image: Any  # runtime np.ndarray, BGRA, processing_size x processing_size
    scale_factor: float
    scaled_width: int
    scaled_height: int

    @property
    def size(self) -> int:
        return int(self.image.shape[0])


@dataclass(slots=True)
class LabelImage:
    image: Any  # runtime np.ndarray, BGRA, output_size x output_size
    detected: bool = False

    @property
    def size(self) -> int:
        return int(self.image.shape[0])


@dataclass(frozen=True, slots=True)
class RecordInfo:
    identifier: str
    title: str
    image_url: str
    mp3_url: str

    def to_json(self) -> dict[str, str]:
        return {
            "identifier": self.identifier,
            "title": self.title,
            "imageUrl": self.image_url,
            "mp3Url": self.mp3_url,
        }


@dataclass(slots=True)
class LabelAnalysis:
    label: LabelImage
    circle: Circle = NULL_CIRCLE
    scale_factor: float = 0.0
    debug_image: Any | None = None  # runtime np.ndarray (source copy with overlay)
    background: tuple[int, int, int] | None = None
    foreground: tuple[int, int, int] | None = None
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return bool(self.label.detected)

    def source_circle(self) -> dict[str, Any] | None:
        """Circle in source-image pixels, rounded like the debug panel shows it."""
        if self.circle.is_null or self.scale_factor <= 0:
            return None
        src = self.circle.scaled(self.scale_factor)
        radius = round_half_up(src.radius)
        return {
            "x": round_half_up(src.x),
            "y": round_half_up(src.y),
            "radius": radius,
            "diameter": radius * 2,
            "detectedRadius": float(self.circle.radius),
        }


__all__ = [
    "Circle",
    "round_half_up",
    "NULL_CIRCLE",
    "ProcessingFrame",
    "LabelImage",
    "RecordInfo",
    "LabelAnalysis",
]
