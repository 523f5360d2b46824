"""Interface for ``python -m redis_emulator``."""

from __future__ import annotations

import logging
import sys
from argparse import ArgumentParser
from typing import TYPE_CHECKING, Any, get_args


if TYPE_CHECKING:
    from collections.abc import Sequence

from ._version import version
from .client import RedisEmulator
from .configuration import BackendName, Configuration, EmulatorSettings, build_backend
from .errors import EmulatorError


__all__ = ["format_reply", "main"]

_STATUS_COMMANDS = {"set", "mset", "setex", "flushdb"}


def format_reply(command: str, args: Sequence[str], reply: Any) -> str:
    """Render a command result the way redis-cli prints replies."""
    if reply is None:
        return "(nil)"
    if isinstance(reply, int):
        return f"(integer) {reply}"
    if isinstance(reply, list):
        if not reply:
            return "(empty array)"
        return "\n".join(f"{index}) {format_reply(command, args, item)}" for index, item in enumerate(reply, 1))
    if command in _STATUS_COMMANDS or command == "info" or (command == "ping" and not args):
        return str(reply)
    return f'"{reply}"'


def main(args: Sequence[str] | None = None) -> int:
    """Run a single command against the configured backend."""
    parser = ArgumentParser(prog="redis_emulator", description="Run one Redis command against a cache backend.")
    _ = parser.add_argument("-v", "--version", action="version", version=version)
    _ = parser.add_argument("--backend", choices=get_args(BackendName), help="backend type (env REDIS_EMULATOR_BACKEND)")
    _ = parser.add_argument("--url", help="backend URL or DSN (env REDIS_EMULATOR_URL)")
    _ = parser.add_argument("--log-level", help="logging level (env REDIS_EMULATOR_LOG_LEVEL)")
    _ = parser.add_argument("command", nargs="?", help="command name, e.g. GET")
    _ = parser.add_argument("arguments", nargs="*", help="command arguments")
    options = parser.parse_args(args)

    overrides = {
        name: value
        for name, value in (("backend", options.backend), ("url", options.url), ("log_level", options.log_level))
        if value is not None
    }
    settings = EmulatorSettings(**overrides)
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if options.command is None:
        parser.print_help()
        return 0

    configuration = Configuration(default_factory=lambda: build_backend(settings))
    try:
        redis = RedisEmulator(configuration)
        reply = redis.execute_command(options.command, *options.arguments)
    except EmulatorError as error:
        print(f"(error) ERR {error}", file=sys.stderr)
        return 1
    finally:
        configuration.close()

    print(format_reply(options.command.lower(), options.arguments, reply))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
