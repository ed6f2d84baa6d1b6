"""Shared database interface definitions.

This module provides lightweight typing Protocols for the parts of the
DB-API used by the query service, so the service can be exercised with
fakes in tests instead of a live server.

Implemented by psycopg2 connections and cursors.
"""

from __future__ import annotations

from types import TracebackType
from typing import IO, Iterator, Optional, Protocol, Sequence, Tuple, Type, Union


class ColumnProtocol(Protocol):
    """A column descriptor: the name and PostgreSQL type OID of one result column."""

    @property
    def name(self) -> str:
        """Column name as reported by the server."""
        ...

    @property
    def type_code(self) -> int:
        """Type OID of the column."""
        ...


class CursorProtocol(Protocol):
    """Minimal DB-API cursor protocol used by the query service."""

    def execute(self, query: str) -> None:
        """Execute a single SQL statement."""
        ...

    def copy_expert(self, sql: str, file: IO[bytes], size: int = ...) -> None:
        """Run a COPY statement using ``file`` as the client-side stream."""
        ...

    @property
    def description(self) -> Optional[Sequence[ColumnProtocol]]:
        """DB-API cursor description: column metadata or None before execution."""
        ...

    def __iter__(self) -> Iterator[Tuple[object, ...]]:
        """Iterate over the remaining result rows."""
        ...

    def close(self) -> None:
        """Close the cursor."""
        ...

    def __enter__(self) -> "CursorProtocol":
        ...  # pragma: no cover - typing aid

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> Union[bool, None]:
        ...  # pragma: no cover - typing aid


class ConnectionProtocol(Protocol):
    """Minimal DB-API connection protocol used by the query service."""

    autocommit: bool

    def cursor(self) -> CursorProtocol:
        """Return a new database cursor."""
        ...

    def close(self) -> None:
        """Close the underlying connection."""
        ...
