"""In-memory backend implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from typing_extensions import override

from .protocol import Backend


if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class _Entry:
    value: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryAsyncBackend(Backend):
    """Simple in-memory backend for local development and tests.

    Expired entries are dropped lazily, the next time they are touched.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        super().__init__()
        self._store: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        return entry

    @override
    async def exists(self, key: str) -> bool:
        """Return True when key holds a live value."""
        async with self._lock:
            return self._live_entry(key) is not None

    @override
    async def read(self, key: str) -> str | None:
        """Return raw value for key, or None when key does not exist."""
        async with self._lock:
            entry = self._live_entry(key)
        return None if entry is None else entry.value

    @override
    async def write(self, key: str, value: str, expires_in: timedelta | None = None) -> None:
        """Store raw value for key with an optional expiry."""
        expires_at = None if expires_in is None else self._clock() + expires_in
        async with self._lock:
            self._store[key] = _Entry(value=value, expires_at=expires_at)

    @override
    async def delete(self, key: str) -> bool:
        """Delete key if present."""
        async with self._lock:
            if self._live_entry(key) is None:
                return False
            del self._store[key]
            return True

    @override
    async def clear(self) -> None:
        """Drop every entry."""
        async with self._lock:
            self._store.clear()

    @override
    async def close(self) -> None:
        """Release backend resources."""
        return
