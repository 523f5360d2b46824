from typing_extensions import override

import pytest

from redis_emulator.backends import redis as redis_backend_module
from redis_emulator.backends.in_memory import InMemoryAsyncBackend
from redis_emulator.backends.nats import NatsBackend
from redis_emulator.backends.postgres import PostgresBackend
from redis_emulator.backends.redis import RedisBackend
from redis_emulator.configuration import (
    Configuration,
    EmulatorSettings,
    build_backend,
    configure,
    get_configuration,
    reset_configuration,
)


class _ClosingBackend(InMemoryAsyncBackend):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    @override
    async def close(self) -> None:
        self.closed = True


class _FakeRedisModule:
    @staticmethod
    def from_url(url: str, *, decode_responses: bool) -> dict[str, object]:
        return {"url": url, "decode_responses": decode_responses}


def test_settings_default_to_memory_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REDIS_EMULATOR_BACKEND", raising=False)
    settings = EmulatorSettings()
    assert settings.backend == "memory"
    assert settings.url is None
    assert settings.create_storage is False


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_EMULATOR_BACKEND", "postgres")
    monkeypatch.setenv("REDIS_EMULATOR_POSTGRES_TABLE", "cache_entries")
    monkeypatch.setenv("REDIS_EMULATOR_CREATE_STORAGE", "true")

    settings = EmulatorSettings()
    assert settings.backend == "postgres"
    assert settings.postgres_table == "cache_entries"
    assert settings.create_storage is True


def test_settings_reject_unknown_backend() -> None:
    with pytest.raises(ValueError, match="backend"):
        _ = EmulatorSettings(backend="memcached")  # type: ignore[arg-type]


def test_build_backend_selects_bundled_backends(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(redis_backend_module, "redis_async", _FakeRedisModule)

    assert isinstance(build_backend(EmulatorSettings(backend="memory")), InMemoryAsyncBackend)
    assert isinstance(build_backend(EmulatorSettings(backend="nats")), NatsBackend)
    assert isinstance(build_backend(EmulatorSettings(backend="postgres", postgres_table="t1")), PostgresBackend)

    redis_backend = build_backend(EmulatorSettings(backend="redis", url="redis://cache:6379/2"))
    assert isinstance(redis_backend, RedisBackend)
    assert redis_backend._client == {"url": "redis://cache:6379/2", "decode_responses": True}


def test_backend_is_created_lazily_once() -> None:
    created: list[InMemoryAsyncBackend] = []

    def factory() -> InMemoryAsyncBackend:
        created.append(InMemoryAsyncBackend())
        return created[-1]

    configuration = Configuration(default_factory=factory)
    try:
        assert configuration.has_backend is False
        assert created == []

        first = configuration.backend
        assert configuration.backend is first
        assert created == [first]
    finally:
        configuration.close()


def test_default_factory_reads_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_EMULATOR_BACKEND", "memory")
    configuration = Configuration()
    try:
        assert isinstance(configuration.backend, InMemoryAsyncBackend)
    finally:
        configuration.close()


def test_set_backend_replaces_active_backend() -> None:
    configuration = Configuration(InMemoryAsyncBackend())
    replacement = InMemoryAsyncBackend()
    try:
        configuration.set_backend(replacement)
        assert configuration.backend is replacement
    finally:
        configuration.close()


def test_set_backend_rejects_non_backend() -> None:
    configuration = Configuration()
    with pytest.raises(TypeError, match="backend must implement Backend"):
        configuration.set_backend(object())  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="backend must implement Backend"):
        _ = Configuration(object())  # type: ignore[arg-type]


def test_run_executes_coroutines_on_backend_loop() -> None:
    backend = InMemoryAsyncBackend()
    configuration = Configuration(backend)
    try:
        configuration.run(backend.write("key", "value"))
        assert configuration.run(backend.read("key")) == "value"
    finally:
        configuration.close()


def test_close_closes_created_backend_only() -> None:
    backend = _ClosingBackend()
    configuration = Configuration(backend)
    configuration.close()
    assert backend.closed is True

    untouched = Configuration(default_factory=_ClosingBackend)
    untouched.close()
    assert untouched.has_backend is False


@pytest.mark.usefixtures("process_configuration")
def test_process_configuration_is_shared_and_lazy() -> None:
    configuration = get_configuration()
    assert get_configuration() is configuration
    assert configure() is configuration
    assert configuration.has_backend is False


@pytest.mark.usefixtures("process_configuration")
def test_configure_installs_backend_and_factory() -> None:
    backend = InMemoryAsyncBackend()
    configuration = configure(backend)
    assert get_configuration().backend is backend

    replacement = InMemoryAsyncBackend()
    assert configure(replacement) is configuration
    assert configuration.backend is replacement


@pytest.mark.usefixtures("process_configuration")
def test_configure_updates_default_factory_before_first_use() -> None:
    backend = InMemoryAsyncBackend()
    _ = get_configuration()
    configure(default_factory=lambda: backend)
    assert get_configuration().backend is backend


@pytest.mark.usefixtures("process_configuration")
def test_reset_configuration_closes_and_forgets() -> None:
    backend = _ClosingBackend()
    first = configure(backend)
    reset_configuration()

    assert backend.closed is True
    assert get_configuration() is not first
    reset_configuration()
    reset_configuration()
