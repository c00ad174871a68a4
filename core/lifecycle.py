"""Background event loop hosting the web service, and the vision readiness gate."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import TimeoutError
from typing import Any, Callable, Generic, TypeVar

L = logging.getLogger("jukebox78.runtime")


T = TypeVar("T")


class ServiceLoop:
    """One asyncio loop on a daemon thread; sync code submits coroutines to it.

    The loop starts lazily on the first submit. After stop() it cannot be
    restarted.
    """

    def __init__(self, name: str = "jukebox78-loop"):
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._thread_ident: int | None = None
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _in_loop_thread(self) -> bool:
        return self._thread_ident is not None and threading.get_ident() == self._thread_ident

    def _start(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._stopped:
                raise RuntimeError(f"{self.name} already stopped")
            if self._loop is not None and self.running:
                return self._loop
            loop = asyncio.new_event_loop()
            started = threading.Event()

            def _main():
                asyncio.set_event_loop(loop)
                self._thread_ident = threading.get_ident()
                started.set()
                loop.run_forever()

            self._loop = loop
            self._thread = threading.Thread(target=_main, name=self.name, daemon=True)
            self._thread.start()
            started.wait(timeout=0.5)
            L.debug("%s started", self.name)
            return loop

    def submit(self, coro: Coroutine[Any, Any, T], timeout: float | None = 2.0) -> T:
        """Run `coro` on the loop and block the calling thread for its result."""
        if self._in_loop_thread():
            coro.close()
            raise RuntimeError("submit() called from the loop thread; await instead")
        try:
            loop = self._start()
        except RuntimeError:
            coro.close()
            raise
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            L.warning("%s: coroutine timed out after %.2fs", self.name, timeout or 0)
            raise

    async def _cancel_pending(self):
        current = asyncio.current_task()
        pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        L.debug("%s cancelling %d pending tasks", self.name, len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        await asyncio.get_running_loop().shutdown_asyncgens()

    def stop(self, timeout: float = 1.0):
        if self._in_loop_thread():
            raise RuntimeError("stop() called from the loop thread")
        with self._lock:
            self._stopped = True
            loop, thread = self._loop, self._thread
        if loop is None or thread is None or loop.is_closed():
            return
        try:
            asyncio.run_coroutine_threadsafe(self._cancel_pending(), loop).result(timeout)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)
        if thread.is_alive():
            L.warning("%s thread still alive after %.2fs; loop left open", self.name, timeout)
            return
        loop.close()
        self._loop = None
        self._thread = None
        self._thread_ident = None
        L.debug("%s stopped", self.name)


class ReadinessGate(Generic[T]):
    """One-time initialization barrier shared by every caller.

    The first `wait()` runs `init_fn` in the default executor; later callers
    await the same future. A failed initialization stays failed.
    """

    def __init__(self, init_fn: Callable[[], T], *, name: str = "vision"):
        self._init_fn = init_fn
        self._name = name
        self._future: asyncio.Future[T] | None = None
        self.init_calls = 0

    def _run_init(self) -> T:
        self.init_calls += 1
        result = self._init_fn()
        L.info("%s ready", self._name)
        return result

    async def wait(self) -> T:
        if self._future is None:
            loop = asyncio.get_running_loop()
            self._future = loop.run_in_executor(None, self._run_init)
        # Shield so a cancelled waiter does not cancel the shared init.
        return await asyncio.shield(self._future)

    @property
    def started(self) -> bool:
        return self._future is not None

    @property
    def ready(self) -> bool:
        fut = self._future
        return bool(fut is not None and fut.done() and not fut.cancelled() and fut.exception() is None)


__all__ = [
    "ServiceLoop",
    "ReadinessGate",
]
