"""Summary: Ports defining store use case dependencies.
Why: Let tests hand the store an in-memory database manager double."""

from __future__ import annotations

from sqlite3 import Connection
from typing import Protocol, runtime_checkable


@runtime_checkable
class DatabaseManagerPort(Protocol):
    """Port for database lifecycle management."""

    conn: Connection | None

    def connect(self) -> None:
        """Ensure the underlying connection is ready."""
        ...

    def close(self) -> None:
        """Tear down the managed connection."""
        ...


__all__ = ["DatabaseManagerPort"]
