"""
Custom exceptions for running SQL scripts against PostgreSQL.

Every error carries a human-readable message and may also carry a
vendor error code (the SQLSTATE reported by the server), a remediation
hint, and nested causes.
"""

from typing import Iterable, Optional, Tuple


class PgScriptError(Exception):
    """Base class for all errors raised while running a script."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        inner: Iterable["PgScriptError"] = (),
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable description of the failure.
            code: Vendor-specific error code, passed through verbatim.
            hint: Optional remediation text for the user.
            inner: Nested errors that together explain this one.
        """
        self.message = message
        self.code = code
        self.hint = hint
        self.inner: Tuple[PgScriptError, ...] = tuple(inner)
        super().__init__(self.message)


class ConfigurationError(PgScriptError):
    """Raised when a required connection setting is missing or malformed."""


class DBConnectionError(PgScriptError):
    """Raised when there are issues connecting to the database."""


class UnsupportedSslModeError(DBConnectionError):
    """Raised when the requested sslmode has no connection strategy."""


class SqlSyntaxError(PgScriptError):
    """Raised when the script cannot be parsed; nothing has been executed."""


class DatabaseError(PgScriptError):
    """Base class for all database-side failures."""


class ExecutionError(DatabaseError):
    """Raised when a statement fails at the server."""


class ForeignKeyError(ExecutionError):
    """Raised when a foreign key constraint fails."""


class ConstraintError(ExecutionError):
    """Raised when a database constraint is violated."""


class DatabaseTypeError(ExecutionError, TypeError):
    """Raised when there's a type mismatch in database operations."""


class IntegrityError(ExecutionError):
    """Raised when database integrity is violated."""


class SchemaError(ExecutionError):
    """Raised when there are schema-related issues."""


class TableNotFoundError(ExecutionError):
    """Raised when a table is not found in the database."""


class DecodingError(PgScriptError):
    """Raised when a result value cannot be converted to the value model."""


class UnsupportedColumnTypeError(DecodingError):
    """Raised when a result column has a wire type with no decoder."""

    def __init__(self, column: str, type_name: str) -> None:
        self.column = column
        self.type_name = type_name
        super().__init__(
            f"Unsupported column type '{type_name}' for column '{column}'",
            hint=f"Cast the column to a supported type, e.g. `{column}::text`",
        )


class UnsupportedOperationError(PgScriptError):
    """Raised for statements that are recognised but deliberately not run."""
