"""Tests for the DatabaseManager class.

This module verifies the three execution paths and the translation of
psycopg2 errors into the project's exception hierarchy.
"""

import psycopg2
import psycopg2.errors
import pytest

from db.config import Settings
from db.connection_negotiator import ConnectionNegotiator
from db.database_manager import DatabaseManager
from db.exceptions import (
    ConstraintError,
    DatabaseTypeError,
    DBConnectionError,
    ExecutionError,
    ForeignKeyError,
    SchemaError,
    TableNotFoundError,
    UnsupportedColumnTypeError,
)
from db.row_decoder import Oid
from helpers.debug_util import DebugUtil
from models.connection_params import ConnectionParams
from models.value import IntValue, ListValue, RecordValue, StringValue
from tests.conftest import Column, ConnectRecorder, FakeConnection


class UndefinedTableWithCode(psycopg2.errors.UndefinedTable):
    pgcode = "42P01"


def open_manager(
    fake_connect: ConnectRecorder, params: ConnectionParams, conn: FakeConnection
) -> DatabaseManager:
    fake_connect.outcomes.append(conn)
    debug_util = DebugUtil("quiet")
    return DatabaseManager(params, ConnectionNegotiator(Settings(), debug_util), debug_util)


class TestDatabaseManagerLifecycle:
    """Connection ownership."""

    def test_context_manager_closes_connection(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection()
        with open_manager(fake_connect, connection_params, conn):
            assert not conn.closed
        assert conn.closed

    def test_close_is_idempotent(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        db = open_manager(fake_connect, connection_params, FakeConnection())
        db.close()
        db.close()

    def test_use_after_close_raises(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        db = open_manager(fake_connect, connection_params, FakeConnection())
        db.close()
        with pytest.raises(DBConnectionError):
            db.execute("SELECT 1")

    def test_connection_failure_propagates(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        fake_connect.outcomes.append(psycopg2.OperationalError("could not connect to server"))
        with pytest.raises(DBConnectionError):
            DatabaseManager(connection_params, debug_util=DebugUtil("quiet"))


class TestExecutionPaths:
    """query, copy_in and execute."""

    def test_query_decodes_all_rows(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection(
            results=[("FROM users", [Column("id", Oid.INT4), Column("name", Oid.TEXT)], [(1, "a"), (2, "b")])]
        )
        with open_manager(fake_connect, connection_params, conn) as db:
            result = db.query("SELECT id, name FROM users")

        assert result == ListValue(
            items=[
                RecordValue(fields={"id": IntValue(value=1), "name": StringValue(value="a")}),
                RecordValue(fields={"id": IntValue(value=2), "name": StringValue(value="b")}),
            ]
        )

    def test_query_with_no_rows(self, fake_connect: ConnectRecorder, connection_params: ConnectionParams) -> None:
        conn = FakeConnection(results=[("FROM users", [Column("id", Oid.INT4)], [])])
        with open_manager(fake_connect, connection_params, conn) as db:
            assert db.query("SELECT id FROM users") == ListValue(items=[])

    def test_query_with_unsupported_column(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection(results=[("FROM prices", [Column("amount", Oid.NUMERIC)], [("1.50",)])])
        with open_manager(fake_connect, connection_params, conn) as db:
            with pytest.raises(UnsupportedColumnTypeError):
                db.query("SELECT amount FROM prices")

    def test_copy_in_streams_all_bytes(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection()
        payload = b"1\talice\n2\tbob\n"
        with open_manager(fake_connect, connection_params, conn) as db:
            db.copy_in("COPY users FROM STDIN", payload)
        assert conn.copied == [payload]
        assert conn.executed == ["COPY users FROM STDIN"]

    def test_execute_runs_statement(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection()
        with open_manager(fake_connect, connection_params, conn) as db:
            db.execute("CREATE TABLE users (id INT)")
        assert conn.executed == ["CREATE TABLE users (id INT)"]


class TestErrorTranslation:
    """psycopg2 errors are translated into ExecutionError subclasses."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (psycopg2.errors.UndefinedTable('relation "missing" does not exist'), TableNotFoundError),
            (psycopg2.errors.UndefinedColumn('column "nope" does not exist'), SchemaError),
            (psycopg2.errors.ForeignKeyViolation("violates foreign key constraint"), ForeignKeyError),
            (psycopg2.errors.UniqueViolation("duplicate key value"), ConstraintError),
            (psycopg2.errors.NotNullViolation("null value in column"), ConstraintError),
            (psycopg2.errors.InvalidTextRepresentation("invalid input syntax"), DatabaseTypeError),
            (psycopg2.errors.SyntaxError('syntax error at or near "FROMM"'), ExecutionError),
        ],
    )
    def test_translation(
        self,
        fake_connect: ConnectRecorder,
        connection_params: ConnectionParams,
        error: psycopg2.Error,
        expected: type,
    ) -> None:
        conn = FakeConnection(failures=[("target", error)])
        with open_manager(fake_connect, connection_params, conn) as db:
            with pytest.raises(expected) as exc_info:
                db.execute("UPDATE target SET a = 1")
        assert exc_info.value.__cause__ is error
        assert str(error).strip() in exc_info.value.message

    def test_server_error_code_is_passed_through(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection(failures=[("missing", UndefinedTableWithCode('relation "missing" does not exist'))])
        with open_manager(fake_connect, connection_params, conn) as db:
            with pytest.raises(TableNotFoundError) as exc_info:
                db.query("SELECT * FROM missing")
        assert exc_info.value.code == "42P01"

    def test_copy_failure_is_translated(
        self, fake_connect: ConnectRecorder, connection_params: ConnectionParams
    ) -> None:
        conn = FakeConnection(failures=[("users", psycopg2.errors.BadCopyFileFormat("missing data for column"))])
        with open_manager(fake_connect, connection_params, conn) as db:
            with pytest.raises(DatabaseTypeError):
                db.copy_in("COPY users FROM STDIN", b"oops\n")
