"""Backend interface definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from datetime import timedelta


class Backend(ABC):
    """Async cache backend interface.

    This is the whole capability set the command processor relies on. There is
    deliberately no TTL query, key enumeration, atomic increment or conditional
    write here.
    """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True when key holds a live (non-expired) value."""

    @abstractmethod
    async def read(self, key: str) -> str | None:
        """Return raw value for key, or None when key does not exist."""

    @abstractmethod
    async def write(self, key: str, value: str, expires_in: timedelta | None = None) -> None:
        """Store raw value for key, replacing any previous value and expiry.

        Without ``expires_in`` the key does not expire. A non-positive
        ``expires_in`` leaves the key already expired.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if a live key was removed."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""

    @abstractmethod
    async def close(self) -> None:
        """Close any backend resources."""
