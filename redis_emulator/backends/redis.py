"""Redis-compatible backend implementation."""

from __future__ import annotations

from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from typing_extensions import override


try:
    import redis.asyncio as redis_async
except ImportError:  # pragma: no cover - exercised when dependency is absent
    redis_async = None

from .protocol import Backend


if TYPE_CHECKING:
    from datetime import timedelta


def _normalize_string(value: str | bytes | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return value


class RedisBackend(Backend):
    """Redis-compatible async backend using ``redis.asyncio`` client APIs.

    Only the plain cache primitives of the server are used, so the server
    stands in for any store with the same limited capability set.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Any | None = None) -> None:
        """Create a backend from URL or an injected async client.

        Parameters
        ----------
        url
            Redis connection URL used when ``client`` is not provided.
        client
            Optional injected client with ``exists/get/set/delete/flushdb/aclose`` API.
        """
        super().__init__()
        self._url = url
        if client is not None:
            self._client = client
            return

        if redis_async is None:
            msg = "redis dependency is required for RedisBackend; install with `uv add redis`"
            raise RuntimeError(msg)

        self._client = redis_async.from_url(url, decode_responses=True)

    @override
    async def exists(self, key: str) -> bool:
        """Return True when key exists on the server."""
        return bool(await self._client.exists(key))

    @override
    async def read(self, key: str) -> str | None:
        """Return raw value for key, or None when key does not exist."""
        return _normalize_string(await self._client.get(key))

    @override
    async def write(self, key: str, value: str, expires_in: timedelta | None = None) -> None:
        """Store raw value for key; a plain SET also drops any previous TTL."""
        if expires_in is None:
            await self._client.set(key, value)
            return

        milliseconds = int(expires_in.total_seconds() * 1000)
        if milliseconds <= 0:
            # the server rejects non-positive expiry; the key is expired already
            await self._client.delete(key)
            return
        await self._client.set(key, value, px=milliseconds)

    @override
    async def delete(self, key: str) -> bool:
        """Delete key if present."""
        return bool(await self._client.delete(key))

    @override
    async def clear(self) -> None:
        """Flush the selected database."""
        await self._client.flushdb()

    @override
    async def close(self) -> None:
        """Release backend resources."""
        close_method = getattr(self._client, "aclose", None)
        if close_method is None:
            close_method = getattr(self._client, "close", None)
        if close_method is None:
            return

        maybe_awaitable = close_method()
        if isawaitable(maybe_awaitable):
            await maybe_awaitable
