from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing_extensions import override

import pytest

from redis_emulator.backends.in_memory import InMemoryAsyncBackend
from redis_emulator.client import RedisEmulator
from redis_emulator.configuration import reset_configuration


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingBackend(InMemoryAsyncBackend):
    """In-memory backend that records every capability call."""

    def __init__(self, clock: FakeClock) -> None:
        super().__init__(clock=clock)
        self.calls: list[tuple[str, ...]] = []

    @override
    async def exists(self, key: str) -> bool:
        self.calls.append(("exists", key))
        return await super().exists(key)

    @override
    async def read(self, key: str) -> str | None:
        self.calls.append(("read", key))
        return await super().read(key)

    @override
    async def write(self, key: str, value: str, expires_in: timedelta | None = None) -> None:
        self.calls.append(("write", key))
        await super().write(key, value, expires_in)

    @override
    async def delete(self, key: str) -> bool:
        self.calls.append(("delete", key))
        return await super().delete(key)

    @override
    async def clear(self) -> None:
        self.calls.append(("clear",))
        await super().clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> RecordingBackend:
    return RecordingBackend(clock)


@pytest.fixture
def redis(backend: RecordingBackend) -> Generator[RedisEmulator]:
    client = RedisEmulator(backend=backend)
    try:
        yield client
    finally:
        client.configuration.close()


@pytest.fixture
def process_configuration() -> Generator[None]:
    reset_configuration()
    try:
        yield
    finally:
        reset_configuration()
