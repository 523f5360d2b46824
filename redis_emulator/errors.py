"""Exceptions raised by the command processor."""

from __future__ import annotations


class EmulatorError(Exception):
    """Base class for errors raised by the emulator itself."""


class CommandArgumentError(EmulatorError, ValueError):
    """A command was called with bad arity, conflicting flags or bad values.

    Raised before any backend call is issued, so backend state is untouched.
    """


class NotAnIntegerError(EmulatorError, ValueError):
    """A counter command met a value that is not a base-10 integer."""

    def __init__(self, msg: str = "value is not an integer or out of range") -> None:
        super().__init__(msg)
