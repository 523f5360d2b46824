"""NATS JetStream KV backend implementation."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

from typing_extensions import override


try:
    import nats as nats_module
except ImportError:  # pragma: no cover - exercised when dependency is absent
    nats_module = None

from .protocol import Backend


if TYPE_CHECKING:
    from datetime import timedelta


_NOT_FOUND_ERROR_NAMES = {"BucketNotFoundError", "KeyNotFoundError", "KeyDeletedError", "NoKeysError"}


def _is_not_found_error(error: Exception) -> bool:
    return error.__class__.__name__ in _NOT_FOUND_ERROR_NAMES


def _encode_envelope(value: str, expires_at: float | None) -> bytes:
    return json.dumps({"value": value, "expires_at": expires_at}).encode()


def _decode_envelope(raw: bytes | str) -> tuple[str, float | None]:
    if isinstance(raw, bytes):
        raw = raw.decode()
    envelope = json.loads(raw)
    return envelope["value"], envelope.get("expires_at")


class NatsBackend(Backend):
    """NATS JetStream KV backend.

    JetStream KV only knows bucket-wide TTLs, so every value is stored in a
    small JSON envelope carrying its own expiry instant (epoch seconds).
    Expired envelopes read as absent and are purged when touched.

    The backend uses an existing KV bucket by default.
    Set ``create_bucket=True`` to allow creating it when missing.
    """

    def __init__(
        self,
        url: str = "nats://nats:4222",
        bucket: str = "redis_emulator",
        *,
        client: Any | None = None,
        create_bucket: bool = False,
    ) -> None:
        """Create a backend using a NATS URL or injected client.

        Parameters
        ----------
        url
            NATS server URL used when ``client`` is not provided.
        bucket
            JetStream KV bucket name.
        client
            Optional injected connected NATS client with ``jetstream`` API.
        create_bucket
            When True, creates bucket if missing. Defaults to False.
        """
        super().__init__()
        self._url = url
        self._bucket_name = bucket
        self._client = client
        self._create_bucket = create_bucket
        self._kv: Any | None = None

    async def _ensure_kv(self) -> Any:
        if self._kv is not None:
            return self._kv

        if self._client is None:
            if nats_module is None:
                msg = "nats-py dependency is required for NatsBackend; install with `uv add nats-py`"
                raise RuntimeError(msg)
            connect = getattr(nats_module, "connect", None)
            if connect is None:
                msg = "nats.connect is unavailable in installed nats-py package"
                raise RuntimeError(msg)
            self._client = await connect(servers=[self._url])

        jetstream = self._client.jetstream()

        try:
            self._kv = await jetstream.key_value(self._bucket_name)
        except Exception as error:
            if _is_not_found_error(error) and self._create_bucket:
                self._kv = await jetstream.create_key_value(bucket=self._bucket_name)
            else:
                msg = (
                    f"jetstream KV bucket '{self._bucket_name}' is not available; "
                    "create it first or initialize with create_bucket=True"
                )
                raise RuntimeError(msg) from error

        return self._kv

    async def _live_value(self, kv: Any, key: str) -> str | None:
        try:
            entry = await kv.get(key)
        except Exception as error:
            if _is_not_found_error(error):
                return None
            raise

        if entry is None or entry.value is None:
            return None

        value, expires_at = _decode_envelope(entry.value)
        if expires_at is not None and time.time() >= expires_at:
            await kv.purge(key)
            return None
        return value

    @override
    async def exists(self, key: str) -> bool:
        """Return True when key holds a live value."""
        kv = await self._ensure_kv()
        return await self._live_value(kv, key) is not None

    @override
    async def read(self, key: str) -> str | None:
        """Return raw value for key, or None when key does not exist."""
        kv = await self._ensure_kv()
        return await self._live_value(kv, key)

    @override
    async def write(self, key: str, value: str, expires_in: timedelta | None = None) -> None:
        """Store raw value for key inside an expiry envelope."""
        kv = await self._ensure_kv()
        expires_at = None if expires_in is None else time.time() + expires_in.total_seconds()
        await kv.put(key, _encode_envelope(value, expires_at))

    @override
    async def delete(self, key: str) -> bool:
        """Delete key if present."""
        kv = await self._ensure_kv()
        if await self._live_value(kv, key) is None:
            return False
        await kv.purge(key)
        return True

    @override
    async def clear(self) -> None:
        """Purge every key in the bucket."""
        kv = await self._ensure_kv()
        try:
            keys = await kv.keys()
        except Exception as error:
            if _is_not_found_error(error):
                return
            raise

        for key in keys or []:
            await kv.purge(key)

    @override
    async def close(self) -> None:
        """Close NATS client resources."""
        if self._client is None:
            return
        await self._client.close()
