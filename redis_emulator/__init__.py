"""redis-emulator - Redis command surface over a plain cache backend"""

from ._version import version as __version__
from .backends import Backend, InMemoryAsyncBackend
from .client import RedisEmulator
from .configuration import Configuration, EmulatorSettings, configure, get_configuration, reset_configuration
from .errors import CommandArgumentError, EmulatorError, NotAnIntegerError


__all__ = [
    "Backend",
    "CommandArgumentError",
    "Configuration",
    "EmulatorError",
    "EmulatorSettings",
    "InMemoryAsyncBackend",
    "NotAnIntegerError",
    "RedisEmulator",
    "__version__",
    "configure",
    "get_configuration",
    "reset_configuration",
]
