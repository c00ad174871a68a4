"""Scoped ownership for intermediate pixel buffers of one analysis pass."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, TypeVar

import numpy as np

L = logging.getLogger("jukebox78.buffers")

T = TypeVar("T", bound=np.ndarray)


class BufferScope:
    """Tracks buffers allocated during a pass and drops them all on release.

    Buffers returned to the caller must be copied out of the scope first
    (`keep()`), everything else is released when the scope closes.
    """

    def __init__(self, name: str = "analysis"):
        self.name = name
        self._buffers: list[np.ndarray] = []
        self.released = 0
        self.closed = False

    def track(self, buf: T) -> T:
        if self.closed:
            raise RuntimeError(f"buffer scope '{self.name}' already released")
        self._buffers.append(buf)
        return buf

    @staticmethod
    def keep(buf: np.ndarray) -> np.ndarray:
        return buf.copy()

    @property
    def active(self) -> int:
        return len(self._buffers)

    def release(self) -> int:
        count = len(self._buffers)
        self._buffers.clear()
        self.released += count
        self.closed = True
        L.debug("buffer scope '%s' released %d buffers", self.name, count)
        return count


@contextmanager
def buffer_scope(name: str = "analysis") -> Iterator[BufferScope]:
    scope = BufferScope(name)
    try:
        yield scope
    finally:
        scope.release()


__all__ = ["BufferScope", "buffer_scope"]
