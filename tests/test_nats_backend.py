import json
from datetime import timedelta

import pytest

from redis_emulator.backends import nats as nats_module
from redis_emulator.backends.nats import NatsBackend


class BucketNotFoundError(Exception):
    pass


class KeyNotFoundError(Exception):
    pass


class NoKeysError(Exception):
    pass


class _FakeEntry:
    def __init__(self, value: bytes | str) -> None:
        self.value = value
        super().__init__()


class _FakeKVBucket:
    def __init__(self) -> None:
        self.store: dict[str, bytes] = {}
        super().__init__()

    async def get(self, key: str) -> _FakeEntry:
        if key not in self.store:
            raise KeyNotFoundError
        return _FakeEntry(self.store[key])

    async def put(self, key: str, value: bytes) -> None:
        self.store[key] = value

    async def purge(self, key: str) -> None:
        _ = self.store.pop(key, None)

    async def keys(self) -> list[str]:
        if not self.store:
            raise NoKeysError
        return list(self.store)


class _FakeJetStream:
    def __init__(self, buckets: dict[str, _FakeKVBucket]) -> None:
        self.buckets = buckets
        super().__init__()

    async def key_value(self, bucket: str) -> _FakeKVBucket:
        if bucket not in self.buckets:
            raise BucketNotFoundError
        return self.buckets[bucket]

    async def create_key_value(self, bucket: str) -> _FakeKVBucket:
        created = _FakeKVBucket()
        self.buckets[bucket] = created
        return created


class _FakeNatsClient:
    def __init__(self, buckets: dict[str, _FakeKVBucket] | None = None) -> None:
        super().__init__()
        self._js = _FakeJetStream({} if buckets is None else buckets)
        self.closed = False

    def jetstream(self) -> _FakeJetStream:
        return self._js

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def bucket() -> _FakeKVBucket:
    return _FakeKVBucket()


@pytest.fixture
def backend(bucket: _FakeKVBucket) -> NatsBackend:
    return NatsBackend(client=_FakeNatsClient({"redis_emulator": bucket}), bucket="redis_emulator")


@pytest.mark.asyncio
async def test_nats_backend_write_read_delete_roundtrip_existing_bucket(backend: NatsBackend) -> None:
    await backend.write("user", "alice")
    assert await backend.read("user") == "alice"
    assert await backend.exists("user") is True

    assert await backend.delete("user") is True
    assert await backend.read("user") is None
    assert await backend.delete("user") is False


@pytest.mark.asyncio
async def test_nats_backend_stores_value_in_expiry_envelope(backend: NatsBackend, bucket: _FakeKVBucket) -> None:
    await backend.write("plain", "v")
    assert json.loads(bucket.store["plain"]) == {"value": "v", "expires_at": None}

    await backend.write("timed", "v", timedelta(minutes=5))
    assert json.loads(bucket.store["timed"])["expires_at"] is not None


@pytest.mark.asyncio
async def test_nats_backend_expired_envelope_reads_absent_and_is_purged(
    backend: NatsBackend, bucket: _FakeKVBucket
) -> None:
    await backend.write("session", "token", timedelta(seconds=-1))

    assert await backend.exists("session") is False
    assert await backend.read("session") is None
    assert "session" not in bucket.store


@pytest.mark.asyncio
async def test_nats_backend_clear_purges_every_key(backend: NatsBackend, bucket: _FakeKVBucket) -> None:
    await backend.write("a", "1")
    await backend.write("b", "2")
    await backend.clear()
    assert bucket.store == {}

    await backend.clear()


@pytest.mark.asyncio
async def test_nats_backend_missing_bucket_raises_runtime_error_when_create_disabled() -> None:
    backend = NatsBackend(client=_FakeNatsClient({}), bucket="redis_emulator", create_bucket=False)

    with pytest.raises(RuntimeError, match="jetstream KV bucket 'redis_emulator' is not available"):
        _ = await backend.read("user")


@pytest.mark.asyncio
async def test_nats_backend_missing_bucket_can_be_created_when_enabled() -> None:
    backend = NatsBackend(client=_FakeNatsClient({}), bucket="redis_emulator", create_bucket=True)

    await backend.write("user", "value")
    assert await backend.read("user") == "value"


@pytest.mark.asyncio
async def test_nats_backend_close_closes_client() -> None:
    client = _FakeNatsClient({"redis_emulator": _FakeKVBucket()})
    backend = NatsBackend(client=client, bucket="redis_emulator")

    await backend.close()
    assert client.closed is True


@pytest.mark.asyncio
async def test_nats_backend_close_without_client_is_noop() -> None:
    backend = NatsBackend(client=None)
    await backend.close()


@pytest.mark.asyncio
async def test_nats_backend_requires_dependency_without_injected_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(nats_module, "nats_module", None)
    backend = NatsBackend(client=None)

    with pytest.raises(RuntimeError, match="nats-py dependency is required"):
        _ = await backend.read("user")
