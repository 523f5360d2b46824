"""Run async backend calls from synchronous command methods."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any, TypeVar


if TYPE_CHECKING:
    from collections.abc import Coroutine
    from concurrent.futures import Future


_T = TypeVar("_T")


class AsyncLoopBridge:
    """Bridge sync calls to async backend operations on a dedicated loop.

    Backend clients (redis, nats, asyncpg) bind to the loop they were first
    used on, so a backend must always be driven through the same bridge.
    """

    def __init__(self) -> None:
        super().__init__()
        self._loop_ready = threading.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread = threading.Thread(target=self._run, name="redis-emulator-backend-loop", daemon=True)
        self._thread.start()
        _ = self._loop_ready.wait()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._loop_ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._thread.is_alive()

    def run(self, coroutine: Coroutine[Any, Any, _T]) -> _T:
        """Run coroutine on the bridge loop and block until it finishes."""
        if self._loop is None:
            coroutine.close()
            msg = "backend event loop not initialized"
            raise RuntimeError(msg)
        future: Future[_T] = asyncio.run_coroutine_threadsafe(coroutine, self._loop)
        return future.result()

    def close(self) -> None:
        if self._loop is None:
            return
        _ = self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop = None


# id(owner) -> (bridge, number of holders); holders keep owner alive so ids stay unique
_shared_bridges: dict[int, tuple[AsyncLoopBridge, int]] = {}
_shared_bridges_lock = threading.Lock()


def acquire_bridge(owner: object) -> AsyncLoopBridge:
    """Return the bridge that drives ``owner``, starting one if it has none.

    Every handle driving the same backend gets the same loop. Each call must
    be paired with :func:`release_bridge`.
    """
    with _shared_bridges_lock:
        bridge, holders = _shared_bridges.get(id(owner), (None, 0))
        if bridge is None:
            bridge = AsyncLoopBridge()
        _shared_bridges[id(owner)] = (bridge, holders + 1)
        return bridge


def release_bridge(owner: object) -> None:
    """Drop one hold on the bridge of ``owner``; the last release stops its loop."""
    with _shared_bridges_lock:
        entry = _shared_bridges.get(id(owner))
        if entry is None:
            return
        bridge, holders = entry
        if holders > 1:
            _shared_bridges[id(owner)] = (bridge, holders - 1)
            return
        del _shared_bridges[id(owner)]
    bridge.close()
