"""Runtime configuration: which backend the command processor talks to.

A :class:`Configuration` is the handle a :class:`~redis_emulator.client.RedisEmulator`
is constructed with. It holds exactly one backend reference, created lazily on
first access, together with the event loop that drives it.

For applications that want "one backend per process" there is a process-wide
configuration managed by :func:`configure`, :func:`get_configuration` and
:func:`reset_configuration`. Switching backends is a configuration-time
operation; nothing guards it against commands running concurrently.

Example:
    >>> from redis_emulator.backends import InMemoryAsyncBackend
    >>> from redis_emulator.configuration import Configuration
    >>> configuration = Configuration(InMemoryAsyncBackend())
    >>> isinstance(configuration.backend, InMemoryAsyncBackend)
    True
    >>> configuration.close()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from redis_emulator.backends import Backend, InMemoryAsyncBackend, NatsBackend, PostgresBackend, RedisBackend
from redis_emulator.bridge import acquire_bridge, release_bridge


if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from redis_emulator.bridge import AsyncLoopBridge


logger = logging.getLogger(__name__)

_T = TypeVar("_T")

BackendName = Literal["memory", "redis", "nats", "postgres"]


class EmulatorSettings(BaseSettings):
    """Settings for building the default backend.

    Loads from environment variables with the REDIS_EMULATOR_ prefix.

    Example:
        >>> from redis_emulator.configuration import EmulatorSettings
        >>> EmulatorSettings(backend="redis", url="redis://cache:6379/1").url
        'redis://cache:6379/1'
        >>> EmulatorSettings().backend
        'memory'
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_EMULATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: BackendName = Field(default="memory", description="Backend type")
    url: str | None = Field(default=None, description="Backend connection URL or DSN")
    nats_bucket: str = Field(default="redis_emulator", description="JetStream KV bucket name")
    postgres_table: str = Field(default="redis_emulator", description="PostgreSQL table name")
    create_storage: bool = Field(default=False, description="Create the bucket/table when missing")
    log_level: str = Field(default="WARNING", description="Logging level used by the CLI")


def build_backend(settings: EmulatorSettings | None = None) -> Backend:
    """Instantiate the bundled backend selected by settings."""
    settings = settings if settings is not None else EmulatorSettings()
    logger.info("Building %s backend", settings.backend)

    if settings.backend == "redis":
        return RedisBackend(settings.url) if settings.url else RedisBackend()
    if settings.backend == "nats":
        kwargs: dict[str, Any] = {"bucket": settings.nats_bucket, "create_bucket": settings.create_storage}
        return NatsBackend(settings.url, **kwargs) if settings.url else NatsBackend(**kwargs)
    if settings.backend == "postgres":
        kwargs = {"table": settings.postgres_table, "create_table": settings.create_storage}
        return PostgresBackend(settings.url, **kwargs) if settings.url else PostgresBackend(**kwargs)
    return InMemoryAsyncBackend()


class Configuration:
    """Holds the active backend and the loop its coroutines run on."""

    def __init__(
        self,
        backend: Backend | None = None,
        *,
        default_factory: Callable[[], Backend] | None = None,
    ) -> None:
        """Create a configuration handle.

        Parameters
        ----------
        backend
            Backend to use right away. When omitted the backend is created on
            first access.
        default_factory
            Builds the backend lazily. Defaults to :func:`build_backend` with
            settings read from the environment.
        """
        super().__init__()
        if backend is not None and not isinstance(backend, Backend):
            msg = f"backend must implement Backend, got {type(backend).__name__}"
            raise TypeError(msg)
        self._backend = backend
        self._default_factory = default_factory if default_factory is not None else build_backend
        self._bridge: AsyncLoopBridge | None = None
        self._bridge_owner: Backend | None = None

    @property
    def backend(self) -> Backend:
        """Return the active backend, creating the default one if unset."""
        if self._backend is None:
            self._backend = self._default_factory()
            logger.info("Defaulted backend to %s", type(self._backend).__name__)
        return self._backend

    @property
    def has_backend(self) -> bool:
        return self._backend is not None

    def set_backend(self, backend: Backend) -> None:
        """Replace the active backend. The previous one is left open."""
        if not isinstance(backend, Backend):
            msg = f"backend must implement Backend, got {type(backend).__name__}"
            raise TypeError(msg)
        logger.info("Switching backend to %s", type(backend).__name__)
        self._backend = backend

    def run(self, coroutine: Coroutine[Any, Any, _T]) -> _T:
        """Run one backend coroutine to completion on the active backend's loop.

        Handles sharing a backend instance share its loop, so the backend
        client is never driven from two loops at once.
        """
        backend = self.backend
        if self._bridge is None or self._bridge_owner is not backend:
            self.release()
            self._bridge = acquire_bridge(backend)
            self._bridge_owner = backend
        return self._bridge.run(coroutine)

    def release(self) -> None:
        """Stop holding the backend's loop without closing the backend.

        The loop stops once no handle holds it; the next :meth:`run` starts a
        new one.
        """
        if self._bridge_owner is not None:
            release_bridge(self._bridge_owner)
        self._bridge = None
        self._bridge_owner = None

    def close(self) -> None:
        """Close the backend (if one was created) and release its loop."""
        if self._backend is not None:
            self.run(self._backend.close())
        self.release()


_configuration: Configuration | None = None


def configure(
    backend: Backend | None = None,
    *,
    default_factory: Callable[[], Backend] | None = None,
) -> Configuration:
    """Install or update the process-wide configuration and return it."""
    global _configuration  # noqa: PLW0603
    if _configuration is None:
        _configuration = Configuration(backend, default_factory=default_factory)
        return _configuration

    if default_factory is not None:
        _configuration._default_factory = default_factory  # noqa: SLF001
    if backend is not None:
        _configuration.set_backend(backend)
    return _configuration


def get_configuration() -> Configuration:
    """Return the process-wide configuration, creating it on first use."""
    return configure()


def reset_configuration() -> None:
    """Close and forget the process-wide configuration."""
    global _configuration  # noqa: PLW0603
    if _configuration is None:
        return
    _configuration.close()
    _configuration = None
