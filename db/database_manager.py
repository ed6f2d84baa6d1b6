"""Database session used to run one script.

Owns exactly one live connection for its lifetime and provides the three
execution paths a statement can take: a row-producing query, a COPY FROM
STDIN fed from client bytes, and plain execution.
"""

import io
import logging
import traceback
from types import TracebackType
from typing import NoReturn, Optional, Type

import psycopg2
import psycopg2.errors

from db.connection_negotiator import ConnectionNegotiator
from db.exceptions import (
    ConstraintError,
    DatabaseTypeError,
    DBConnectionError,
    ExecutionError,
    ForeignKeyError,
    IntegrityError,
    SchemaError,
    TableNotFoundError,
)
from db.interfaces import ConnectionProtocol, CursorProtocol
from db.row_decoder import decode_rows
from helpers.debug_util import DebugUtil
from models.connection_params import ConnectionParams
from models.value import ListValue

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manager for a single connection and the statements run on it.

    Statements run in autocommit mode, so each one takes effect as soon as
    it completes and nothing is rolled back if a later statement fails.
    """

    def __init__(
        self,
        params: ConnectionParams,
        negotiator: Optional[ConnectionNegotiator] = None,
        debug_util: Optional[DebugUtil] = None,
    ) -> None:
        """Connect to the database described by ``params``.

        Args:
            params: Parsed connection parameters.
            negotiator: Connection negotiator; a default one is created when omitted.
            debug_util: Optional DebugUtil instance for handling debug output.

        Raises:
            DBConnectionError: If the database connection cannot be established.
        """
        self.debug_util = debug_util or DebugUtil()
        self.negotiator = negotiator or ConnectionNegotiator(debug_util=self.debug_util)
        self._conn: Optional[ConnectionProtocol] = self.negotiator.connect(params)

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection; safe to call more than once."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except psycopg2.Error as e:
            logger.error("Error closing database connection: %s", e)
        finally:
            self._conn = None

    def _get_cursor(self) -> CursorProtocol:
        """Get a cursor from the database connection.

        Raises:
            DBConnectionError: If the database connection is not established.
        """
        if self._conn is None:
            raise DBConnectionError("Database connection is not established")
        return self._conn.cursor()

    def query(self, sql: str) -> ListValue:
        """Execute a row-producing statement and decode all of its rows.

        Raises:
            ExecutionError: If the server rejects the statement.
            DecodingError: If a column cannot be decoded.
        """
        self.debug_util.debugMessage(f"Executing query: {sql}")
        with self._get_cursor() as cursor:
            try:
                cursor.execute(sql)
                return ListValue(items=list(decode_rows(cursor)))
            except psycopg2.Error as e:
                self._translate_and_raise(e)

    def copy_in(self, sql: str, data: bytes) -> None:
        """Run a ``COPY ... FROM STDIN`` statement, streaming all of ``data`` to it.

        Raises:
            ExecutionError: If the server rejects the statement or the data.
        """
        self.debug_util.debugMessage(f"Executing COPY FROM STDIN with {len(data)} bytes: {sql}")
        with self._get_cursor() as cursor:
            try:
                cursor.copy_expert(sql, io.BytesIO(data))
            except psycopg2.Error as e:
                self._translate_and_raise(e)

    def execute(self, sql: str) -> None:
        """Execute a statement without reading any rows it may return.

        Raises:
            ExecutionError: If the server rejects the statement.
        """
        self.debug_util.debugMessage(f"Executing statement: {sql}")
        with self._get_cursor() as cursor:
            try:
                cursor.execute(sql)
            except psycopg2.Error as e:
                self._translate_and_raise(e)

    def _translate_and_raise(self, e: psycopg2.Error) -> NoReturn:
        """Translate psycopg2 exceptions to our custom exceptions and raise.

        The server's SQLSTATE is passed through as the error code, and the
        server's hint, when present, as the error hint.

        Always raises; does not return.
        """
        self.debug_util.debugMessage(traceback.format_exc())
        code = e.pgcode
        diag = getattr(e, "diag", None)
        hint = getattr(diag, "message_hint", None)
        message = (getattr(diag, "message_primary", None) or str(e)).strip()

        if isinstance(e, psycopg2.errors.UndefinedTable):
            raise TableNotFoundError(f"Table not found: {message}", code=code, hint=hint) from e
        if isinstance(e, psycopg2.errors.UndefinedColumn):
            raise SchemaError(f"Schema error: {message}", code=code, hint=hint) from e
        if isinstance(e, psycopg2.errors.ForeignKeyViolation):
            raise ForeignKeyError(f"Foreign key constraint failed: {message}", code=code, hint=hint) from e
        if isinstance(
            e,
            (
                psycopg2.errors.NotNullViolation,
                psycopg2.errors.UniqueViolation,
                psycopg2.errors.CheckViolation,
            ),
        ):
            raise ConstraintError(f"Constraint violation: {message}", code=code, hint=hint) from e
        if isinstance(e, psycopg2.IntegrityError):
            raise IntegrityError(f"Integrity error: {message}", code=code, hint=hint) from e
        if isinstance(e, psycopg2.DataError):
            raise DatabaseTypeError(f"Data error: {message}", code=code, hint=hint) from e
        if isinstance(e, (psycopg2.OperationalError, psycopg2.InterfaceError)) and code is None:
            raise DBConnectionError(f"Lost connection to PostgreSQL: {message}") from e

        raise ExecutionError(f"Database operation failed: {message}", code=code, hint=hint) from e
