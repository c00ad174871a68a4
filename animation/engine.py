"""Playback-driven rotation and platter flip-book timers.

One AnimationSession per loaded record. All methods run on the event loop
thread; timers are call_later chains so a cancel takes effect before the next
tick is scheduled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence

L = logging.getLogger("jukebox78.animation")

PLATTER_FRAME_PATTERN = "platter{:03d}.png"


class PlaybackEvent(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    ENDED = "ended"


class AnimationState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class AnimationSink(Protocol):
    def set_rotation(self, angle_deg: float) -> None: ...

    def show_platter_frame(self, index: int, ref: str) -> None: ...


@dataclass
class AnimationSettings:
    rotation_step_deg: float = 0.72
    rotation_interval_ms: float = 1000.0 / 60.0
    flipbook_interval_ms: float = 50.0
    flipbook_length: int = 30

    @classmethod
    def from_config(cls, anim_cfg) -> "AnimationSettings":
        return cls(
            rotation_step_deg=float(anim_cfg.rotation_step_deg),
            rotation_interval_ms=float(anim_cfg.rotation_interval_ms),
            flipbook_interval_ms=float(anim_cfg.flipbook_interval_ms),
            flipbook_length=int(anim_cfg.flipbook_length),
        )


@dataclass
class RotationState:
    angle: float = 0.0

    def advance(self, step_deg: float) -> float:
        self.angle += step_deg
        return self.angle


def platter_frame_refs(prefix: str = "/platter/", length: int = 30) -> tuple[str, ...]:
    return tuple(prefix + PLATTER_FRAME_PATTERN.format(i) for i in range(int(length)))


class PeriodicTimer:
    """Interval timer on an asyncio loop. start() on a running timer restarts it."""

    def __init__(
        self,
        interval_ms: float,
        callback: Callable[[], None],
        *,
        name: str = "timer",
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.interval_s = max(0.001, float(interval_ms) / 1000.0)
        self.callback = callback
        self.name = name
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self):
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._handle = loop.call_later(self.interval_s, self._fire)
        L.debug("%s started interval=%.1fms", self.name, self.interval_s * 1000.0)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            L.debug("%s cancelled after %d ticks", self.name, self.ticks)

    def _fire(self):
        loop = self._loop
        if self._handle is None or loop is None:
            return
        self._handle = loop.call_later(self.interval_s, self._fire)
        self.ticks += 1
        try:
            self.callback()
        except Exception:
            L.exception("%s tick failed", self.name)


class AnimationSession:
    def __init__(
        self,
        sink: AnimationSink,
        platter_frames: Sequence[str],
        settings: AnimationSettings | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.sink = sink
        self.platter_frames = tuple(platter_frames)
        self.settings = settings or AnimationSettings()
        self.state = AnimationState.IDLE
        self.rotation = RotationState()
        self.flip_index = 0
        self.closed = False
        self._rotation_timer = PeriodicTimer(
            self.settings.rotation_interval_ms,
            self._rotate_tick,
            name="rotation",
            loop=loop,
        )
        self._flipbook_timer = PeriodicTimer(
            self.settings.flipbook_interval_ms,
            self._flipbook_tick,
            name="flipbook",
            loop=loop,
        )

    @property
    def active_timers(self) -> int:
        return int(self._rotation_timer.active) + int(self._flipbook_timer.active)

    @property
    def rotation_ticks(self) -> int:
        return self._rotation_timer.ticks

    def handle_event(self, event: PlaybackEvent | str):
        ev = PlaybackEvent(event)
        if ev is PlaybackEvent.PLAY:
            self.play()
        elif ev is PlaybackEvent.PAUSE:
            self.pause()
        else:
            self.ended()

    def play(self):
        if self.closed:
            raise RuntimeError("animation session already closed")
        self._rotation_timer.start()
        self._start_flipbook()
        self.state = AnimationState.PLAYING

    def pause(self):
        self._stop_timers()
        if self.state is AnimationState.PLAYING:
            self.state = AnimationState.PAUSED

    def ended(self):
        self._stop_timers()
        self.state = AnimationState.IDLE

    def close(self):
        self._stop_timers()
        self.state = AnimationState.IDLE
        self.closed = True

    def _stop_timers(self):
        self._rotation_timer.cancel()
        self._flipbook_timer.cancel()

    def _start_flipbook(self):
        self._flipbook_timer.cancel()
        self.flip_index = 0
        if not self.platter_frames:
            return
        self._flipbook_tick()
        self._flipbook_timer.start()

    def _rotate_tick(self):
        angle = self.rotation.advance(self.settings.rotation_step_deg)
        self.sink.set_rotation(angle)

    def _flipbook_tick(self):
        frames = self.platter_frames
        if not frames:
            return
        index = self.flip_index
        self.sink.show_platter_frame(index, frames[index])
        self.flip_index = (index + 1) % len(frames)


class AnimationEngine:
    """Owns at most one session; loading a record tears the old one down first."""

    def __init__(
        self,
        settings: AnimationSettings | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.settings = settings or AnimationSettings()
        self._loop = loop
        self._session: AnimationSession | None = None

    @property
    def session(self) -> AnimationSession | None:
        return self._session

    def load(self, sink: AnimationSink, platter_frames: Sequence[str]) -> AnimationSession:
        self.unload()
        self._session = AnimationSession(
            sink, platter_frames, self.settings, loop=self._loop
        )
        return self._session

    def unload(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def handle_event(self, event: PlaybackEvent | str):
        if self._session is None:
            L.debug("playback event %s with no record loaded", event)
            return
        self._session.handle_event(event)


__all__ = [
    "AnimationEngine",
    "AnimationSession",
    "AnimationSettings",
    "AnimationSink",
    "AnimationState",
    "PeriodicTimer",
    "PlaybackEvent",
    "RotationState",
    "platter_frame_refs",
]
