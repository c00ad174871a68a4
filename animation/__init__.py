from .engine import (
    AnimationEngine,
    AnimationSession,
    AnimationSettings,
    AnimationSink,
    AnimationState,
    PeriodicTimer,
    PlaybackEvent,
    RotationState,
    platter_frame_refs,
)
from .render import FrameCompositor, PlatterFrameCache, rotate_label, settle_prefetch

__all__ = [
    "AnimationEngine",
    "AnimationSession",
    "AnimationSettings",
    "AnimationSink",
    "AnimationState",
    "FrameCompositor",
    "PeriodicTimer",
    "PlatterFrameCache",
    "PlaybackEvent",
    "RotationState",
    "platter_frame_refs",
    "rotate_label",
    "settle_prefetch",
]
