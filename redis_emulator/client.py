"""Redis command surface emulated over a plain cache backend.

Every command is a synchronous method that validates its arguments, issues
one or more :class:`~redis_emulator.backends.Backend` calls and translates
the results into Redis return conventions.

The backend cannot report TTLs, enumerate keys, increment atomically or write
conditionally. The emulation therefore has known, deliberate gaps:

* ``ttl`` returns ``-1`` for every existing key, whatever expiry it was given.
* ``keys`` always returns an empty list.
* ``incr``/``decr``/``incrby``/``decrby`` are read-modify-write sequences and
  concurrent callers may lose updates.
* ``expire`` is read-then-rewrite and may race with concurrent writers.
* ``set(nx=...)``, ``set(xx=...)`` and ``setnx`` check ``exists`` and then act.
* ``pipelined`` and ``multi`` only group calls; nothing is batched or atomic.

Example:
    >>> from redis_emulator import RedisEmulator
    >>> from redis_emulator.backends import InMemoryAsyncBackend
    >>> redis = RedisEmulator(backend=InMemoryAsyncBackend())
    >>> redis.set("x", "5")
    'OK'
    >>> redis.incrby("x", 3)
    8
    >>> redis.ttl("x")
    -1
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Final, TypeVar

from redis_emulator.configuration import Configuration, get_configuration
from redis_emulator.errors import CommandArgumentError, NotAnIntegerError


if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from redis_emulator.backends import Backend


logger = logging.getLogger(__name__)

_T = TypeVar("_T")

OK: Final = "OK"
PONG: Final = "PONG"
INFO: Final = "# Redis Emulator\r\nredis_version:emulated\r\nredis_mode:standalone\r\n"

_INT64_MIN: Final = -(2**63)
_INT64_MAX: Final = 2**63 - 1
_INTEGER = re.compile(r"-?[0-9]+")

# command name -> (method, min args, max args or None for variadic)
_COMMANDS: Final[dict[str, tuple[str, int, int | None]]] = {
    "get": ("get", 1, 1),
    "set": ("set", 2, None),
    "del": ("delete", 1, None),
    "exists": ("exists", 1, None),
    "expire": ("expire", 2, 2),
    "ttl": ("ttl", 1, 1),
    "keys": ("keys", 1, 1),
    "flushdb": ("flushdb", 0, 0),
    "ping": ("ping", 0, 1),
    "info": ("info", 0, 1),
    "incr": ("incr", 1, 1),
    "decr": ("decr", 1, 1),
    "incrby": ("incrby", 2, 2),
    "decrby": ("decrby", 2, 2),
    "mget": ("mget", 1, None),
    "mset": ("mset", 2, None),
    "setex": ("setex", 3, 3),
    "setnx": ("setnx", 2, 2),
    "getset": ("getset", 2, 2),
    "append": ("append", 2, 2),
    "strlen": ("strlen", 1, 1),
}


def _arity_error(command: str) -> CommandArgumentError:
    return CommandArgumentError(f"wrong number of arguments for '{command}' command")


def _check_key(key: Any) -> str:
    if not isinstance(key, str):
        msg = f"keys must be str, got {type(key).__name__}"
        raise CommandArgumentError(msg)
    return key


def _check_keys(command: str, keys: tuple[Any, ...]) -> list[str]:
    if not keys:
        raise _arity_error(command)
    return [_check_key(key) for key in keys]


def _encode_value(value: Any) -> str:
    """Convert a caller value into the text stored in the backend."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode()
        except UnicodeDecodeError as error:
            msg = "invalid value: bytes must be valid UTF-8"
            raise CommandArgumentError(msg) from error
    # bool is an int subclass but has no unambiguous text form
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return repr(value)
    msg = f"invalid value type {type(value).__name__}; expected str, bytes, int or float"
    raise CommandArgumentError(msg)


def _parse_integer(value: Any) -> int:
    """Parse a base-10 integer the way the server does: no spaces, no '+', 64 bits."""
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, (str, bytes)):
        try:
            text = value.decode() if isinstance(value, bytes) else value
        except UnicodeDecodeError as error:
            raise NotAnIntegerError from error
        if not _INTEGER.fullmatch(text):
            raise NotAnIntegerError
        number = int(text)
    else:
        raise NotAnIntegerError

    if not _INT64_MIN <= number <= _INT64_MAX:
        raise NotAnIntegerError
    return number


def _expire_time(command: str, value: Any, unit: str = "seconds", *, positive: bool = True) -> timedelta:
    msg = f"invalid expire time in '{command}' command"
    try:
        number = _parse_integer(value)
        if positive and number <= 0:
            raise CommandArgumentError(msg)
        return timedelta(**{unit: number})
    except (NotAnIntegerError, OverflowError) as error:
        raise CommandArgumentError(msg) from error


class RedisEmulator:
    """Redis-compatible command interface over a simple cache backend.

    Parameters
    ----------
    configuration
        Handle holding the backend to use. Defaults to the process-wide
        configuration.
    backend
        Shortcut for ``RedisEmulator(Configuration(backend))``.
    """

    def __init__(self, configuration: Configuration | None = None, *, backend: Backend | None = None) -> None:
        super().__init__()
        if configuration is not None and backend is not None:
            msg = "pass either a configuration or a backend, not both"
            raise CommandArgumentError(msg)
        # a handle built here is private to this emulator; close() releases it
        self._owns_configuration = backend is not None
        if backend is not None:
            configuration = Configuration(backend)
        self._configuration = configuration if configuration is not None else get_configuration()

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def backend(self) -> Backend:
        """The backend commands are currently issued against."""
        return self._configuration.backend

    def _call(self, coroutine: Coroutine[Any, Any, _T]) -> _T:
        return self._configuration.run(coroutine)

    # keys and strings

    def get(self, key: str) -> str | None:
        """GET: value of key, or None."""
        key = _check_key(key)
        logger.debug("GET %s", key)
        return self._call(self.backend.read(key))

    def set(
        self,
        key: str,
        value: Any,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
        xx: bool = False,
    ) -> str | None:
        """SET: store value, optionally with an expiry and an NX/XX condition.

        Returns ``"OK"``, or None when the NX/XX condition made it a no-op.
        The condition is checked with ``exists`` before writing, not atomically.
        """
        key = _check_key(key)
        encoded = _encode_value(value)
        if nx and xx:
            msg = "NX and XX options at the same time are not compatible"
            raise CommandArgumentError(msg)
        if ex is not None and px is not None:
            msg = "EX and PX options at the same time are not compatible"
            raise CommandArgumentError(msg)

        expires_in = None
        if ex is not None:
            expires_in = _expire_time("set", ex)
        elif px is not None:
            expires_in = _expire_time("set", px, unit="milliseconds")

        logger.debug("SET %s ex=%s px=%s nx=%s xx=%s", key, ex, px, nx, xx)
        if nx or xx:
            present = self._call(self.backend.exists(key))
            if (nx and present) or (xx and not present):
                return None

        self._call(self.backend.write(key, encoded, expires_in))
        return OK

    def delete(self, *keys: str) -> int:
        """DEL: remove keys, returning how many existed."""
        checked = _check_keys("del", keys)
        logger.debug("DEL %s", checked)
        return sum(1 for key in checked if self._call(self.backend.delete(key)))

    def exists(self, *keys: str) -> int:
        """EXISTS: count existing keys; a key given twice counts twice."""
        checked = _check_keys("exists", keys)
        logger.debug("EXISTS %s", checked)
        return sum(1 for key in checked if self._call(self.backend.exists(key)))

    def expire(self, key: str, seconds: int) -> int:
        """EXPIRE: rewrite the current value with a new expiry.

        Returns 1 when the key existed, else 0. A non-positive ``seconds``
        expires the key right away.
        """
        key = _check_key(key)
        expires_in = _expire_time("expire", seconds, positive=False)
        logger.debug("EXPIRE %s %s", key, seconds)
        value = self._call(self.backend.read(key))
        if value is None:
            return 0
        self._call(self.backend.write(key, value, expires_in))
        return 1

    def ttl(self, key: str) -> int:
        """TTL: -2 when key is absent, otherwise -1.

        The backend cannot report remaining time, so an existing key always
        reads as having no expiry.
        """
        key = _check_key(key)
        logger.debug("TTL %s (remaining time is not available from the backend)", key)
        return -1 if self._call(self.backend.exists(key)) else -2

    def keys(self, pattern: str = "*") -> list[str]:
        """KEYS: always empty; the backend cannot enumerate keys."""
        if not isinstance(pattern, str):
            msg = f"pattern must be str, got {type(pattern).__name__}"
            raise CommandArgumentError(msg)
        logger.debug("KEYS %s (key enumeration is not available from the backend)", pattern)
        return []

    def flushdb(self) -> str:
        """FLUSHDB: remove every key."""
        logger.debug("FLUSHDB")
        self._call(self.backend.clear())
        return OK

    def ping(self, message: str | None = None) -> str:
        return PONG if message is None else message

    def info(self, section: str | None = None) -> str:  # noqa: ARG002
        return INFO

    # counters

    def _increment_by(self, key: str, delta: int) -> int:
        current = self._call(self.backend.read(key))
        base = 0 if current is None else _parse_integer(current)
        result = base + delta
        if not _INT64_MIN <= result <= _INT64_MAX:
            msg = "increment or decrement would overflow"
            raise NotAnIntegerError(msg)
        # no expiry hint: the counter write drops any earlier expiry
        self._call(self.backend.write(key, str(result)))
        return result

    def incr(self, key: str) -> int:
        """INCR: add one; an absent key counts as 0."""
        key = _check_key(key)
        logger.debug("INCR %s", key)
        return self._increment_by(key, 1)

    def decr(self, key: str) -> int:
        """DECR: subtract one; an absent key counts as 0."""
        key = _check_key(key)
        logger.debug("DECR %s", key)
        return self._increment_by(key, -1)

    def incrby(self, key: str, amount: int) -> int:
        """INCRBY: add ``amount``; an absent key counts as 0."""
        key = _check_key(key)
        delta = _parse_integer(amount)
        logger.debug("INCRBY %s %s", key, delta)
        return self._increment_by(key, delta)

    def decrby(self, key: str, amount: int) -> int:
        """DECRBY: subtract ``amount``; an absent key counts as 0."""
        key = _check_key(key)
        delta = _parse_integer(amount)
        logger.debug("DECRBY %s %s", key, delta)
        return self._increment_by(key, -delta)

    # multi-key

    def mget(self, *keys: str) -> list[str | None]:
        """MGET: values in input order, None for absent keys."""
        checked = _check_keys("mget", keys)
        logger.debug("MGET %s", checked)
        return [self._call(self.backend.read(key)) for key in checked]

    def mset(self, *pairs: Any) -> str:
        """MSET: write flattened key/value pairs in order, without expiry.

        An odd number of arguments is rejected before anything is written.
        """
        if not pairs or len(pairs) % 2:
            raise _arity_error("mset")
        items = [(_check_key(key), _encode_value(value)) for key, value in zip(pairs[::2], pairs[1::2], strict=True)]

        logger.debug("MSET %s", [key for key, _ in items])
        for key, value in items:
            self._call(self.backend.write(key, value))
        return OK

    def setex(self, key: str, seconds: int, value: Any) -> str:
        """SETEX: SET with an expiry in seconds."""
        key = _check_key(key)
        encoded = _encode_value(value)
        expires_in = _expire_time("setex", seconds)
        logger.debug("SETEX %s %s", key, seconds)
        self._call(self.backend.write(key, encoded, expires_in))
        return OK

    def setnx(self, key: str, value: Any) -> int:
        """SETNX: write only when key is absent; 1 if written, else 0."""
        key = _check_key(key)
        encoded = _encode_value(value)
        logger.debug("SETNX %s", key)
        if self._call(self.backend.exists(key)):
            return 0
        self._call(self.backend.write(key, encoded))
        return 1

    def getset(self, key: str, value: Any) -> str | None:
        """GETSET: write value and return what was stored before."""
        key = _check_key(key)
        encoded = _encode_value(value)
        logger.debug("GETSET %s", key)
        previous = self._call(self.backend.read(key))
        self._call(self.backend.write(key, encoded))
        return previous

    def append(self, key: str, value: Any) -> int:
        """APPEND: concatenate onto the stored value and return the new length."""
        key = _check_key(key)
        suffix = _encode_value(value)
        logger.debug("APPEND %s", key)
        current = self._call(self.backend.read(key)) or ""
        combined = current + suffix
        self._call(self.backend.write(key, combined))
        return len(combined)

    def strlen(self, key: str) -> int:
        key = _check_key(key)
        value = self._call(self.backend.read(key))
        return 0 if value is None else len(value)

    # grouping

    def pipelined(self, commands: Callable[[RedisEmulator], _T] | None = None) -> _T | None:
        """Run ``commands(self)`` and return its result.

        Each command inside runs immediately on its own; there is no batching,
        atomicity or rollback.
        """
        logger.debug("PIPELINED (commands run immediately, nothing is batched)")
        if commands is None:
            return None
        return commands(self)

    def multi(self, commands: Callable[[RedisEmulator], _T] | None = None) -> _T | None:
        """Run ``commands(self)`` and return its result.

        This is not a transaction: commands are not queued, isolated or rolled
        back on error.
        """
        logger.debug("MULTI (not a transaction, commands run immediately)")
        if commands is None:
            return None
        return commands(self)

    # connection

    def connected(self) -> bool:
        """Always True; there is no connection to lose."""
        return True

    def close(self) -> bool:
        """Always True.

        An emulator built from ``backend=`` releases the event loop of its
        private configuration. The backend itself stays open, and so does a
        configuration that was passed in.
        """
        if self._owns_configuration:
            self._configuration.release()
        return True

    # dispatch

    def execute_command(self, name: str, *args: Any) -> Any:
        """Run a command given by name with raw arguments, like a protocol front-end would.

        Example:
            >>> from redis_emulator import RedisEmulator
            >>> from redis_emulator.backends import InMemoryAsyncBackend
            >>> redis = RedisEmulator(backend=InMemoryAsyncBackend())
            >>> redis.execute_command("SET", "k", "v", "NX")
            'OK'
            >>> redis.execute_command("get", "k")
            'v'
        """
        command = name.lower()
        if command not in _COMMANDS:
            msg = f"unknown command '{name}'"
            raise CommandArgumentError(msg)

        method_name, min_args, max_args = _COMMANDS[command]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise _arity_error(command)

        if command == "set":
            key, value, *options = args
            return self.set(key, value, **_parse_set_options(options))
        return getattr(self, method_name)(*args)


def _parse_set_options(options: list[Any]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    tokens = iter(options)
    for token in tokens:
        flag = str(token).upper()
        if flag in {"NX", "XX"} and flag.lower() not in parsed:
            parsed[flag.lower()] = True
        elif flag in {"EX", "PX"} and flag.lower() not in parsed:
            amount = next(tokens, None)
            if amount is None:
                msg = "syntax error"
                raise CommandArgumentError(msg)
            parsed[flag.lower()] = amount
        else:
            msg = "syntax error"
            raise CommandArgumentError(msg)
    return parsed
