"""Pytest configuration for the test suite.

Provides fake DB-API connections and cursors so the query service can be
exercised without a running server, plus a recorder that stands in for
``psycopg2.connect``.
"""

import sys
from collections import namedtuple
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import psycopg2
import pytest
from psycopg2 import extras as psycopg2_extras

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from models.connection_params import ConnectionParams  # noqa: E402

Column = namedtuple("Column", ["name", "type_code"])

# (substring of the SQL, column descriptions, rows)
FakeResult = Tuple[str, Sequence[Column], Sequence[Tuple[object, ...]]]


class FakeCursor:
    """Cursor double that serves canned results and records what was executed."""

    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.description: Optional[Sequence[Column]] = None
        self._rows: List[Tuple[object, ...]] = []
        self.closed = False

    def execute(self, query: str) -> None:
        self.conn.executed.append(query)
        for needle, error in self.conn.failures:
            if needle in query:
                raise error
        self.description = None
        self._rows = []
        for needle, columns, rows in self.conn.results:
            if needle in query:
                self.description = list(columns)
                self._rows = list(rows)
                return

    def copy_expert(self, sql: str, file: Any, size: int = 8192) -> None:
        self.conn.executed.append(sql)
        for needle, error in self.conn.failures:
            if needle in sql:
                raise error
        self.conn.copied.append(file.read())

    def __iter__(self) -> Iterator[Tuple[object, ...]]:
        while self._rows:
            yield self._rows.pop(0)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class FakeConnection:
    """Connection double holding canned results and failures keyed by SQL substring."""

    def __init__(
        self,
        results: Iterable[FakeResult] = (),
        failures: Iterable[Tuple[str, BaseException]] = (),
    ) -> None:
        self.results = list(results)
        self.failures = list(failures)
        self.executed: List[str] = []
        self.copied: List[bytes] = []
        self.autocommit = False
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class ConnectRecorder:
    """Replacement for ``psycopg2.connect`` that records keyword arguments.

    Each call consumes the next queued outcome: a connection is returned, an
    exception is raised. When the queue is empty a fresh FakeConnection is returned.
    """

    def __init__(self) -> None:
        self.calls: List[Dict[str, object]] = []
        self.outcomes: List[Union[FakeConnection, BaseException]] = []
        self.connections: List[FakeConnection] = []

    def __call__(self, **kwargs: object) -> FakeConnection:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if self.outcomes else FakeConnection()
        if isinstance(outcome, BaseException):
            raise outcome
        self.connections.append(outcome)
        return outcome

    @property
    def sslmodes(self) -> List[object]:
        return [call.get("sslmode") for call in self.calls]


@pytest.fixture
def fake_connect(monkeypatch: pytest.MonkeyPatch) -> Generator[ConnectRecorder, None, None]:
    """Route ``psycopg2.connect`` to a ConnectRecorder for the duration of a test."""
    recorder = ConnectRecorder()
    monkeypatch.setattr(psycopg2, "connect", recorder)
    monkeypatch.setattr(psycopg2_extras, "register_default_json", lambda *args, **kwargs: None)
    monkeypatch.setattr(psycopg2_extras, "register_default_jsonb", lambda *args, **kwargs: None)
    yield recorder


@pytest.fixture
def connection_params() -> ConnectionParams:
    """Parameters for a local database with sslmode=disable."""
    return ConnectionParams(
        host="localhost",
        port="5432",
        user="pgscript",
        password="secret",
        dbname="pgscript_test",
        sslmode="disable",
    )
