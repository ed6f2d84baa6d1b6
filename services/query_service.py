"""Statement dispatcher: run a SQL script and collect its results.

A script is parsed completely before a connection is opened. Statements
then run in source order on one connection, each finishing before the
next starts. The first failure stops the script; statements that already
ran stay applied.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, assert_never

from db.config import Settings, load_connection_url, load_settings
from db.connection_negotiator import ConnectionNegotiator
from db.database_manager import DatabaseManager
from db.exceptions import UnsupportedOperationError
from db.statement_parser import ParsedStatement, StatementKind, parse_script
from helpers.debug_util import DebugUtil
from models.connection_params import ConnectionParams, parse_connection_url
from models.value import ListValue, Value

logger = logging.getLogger(__name__)


class QueryService:
    """Run SQL scripts against the database described by one set of parameters."""

    def __init__(
        self,
        params: ConnectionParams,
        settings: Optional[Settings] = None,
        debug_util: Optional[DebugUtil] = None,
    ) -> None:
        self.params = params
        self.settings = settings or Settings()
        self.debug_util = debug_util or DebugUtil(self.settings.debug_mode)

    def execute(self, script: str, byte_input: Optional[bytes] = None) -> Optional[Value]:
        """Run every statement in ``script``.

        Args:
            script: One or more SQL statements.
            byte_input: Bytes streamed into each ``COPY ... FROM STDIN`` statement.

        Returns:
            ``None`` if no statement produced rows, the list of records if exactly
            one did, otherwise a list holding one list of records per such statement.

        Raises:
            SqlSyntaxError: If the script does not parse; nothing is executed.
            DBConnectionError: If no connection could be established.
            UnsupportedOperationError: For ``COPY ... TO STDOUT``.
            ExecutionError: If a statement fails at the server.
            DecodingError: If a result column cannot be decoded.
        """
        statements = parse_script(script)
        if not statements:
            logger.info("Script contains no statements")
            return None

        outputs: List[ListValue] = []
        negotiator = ConnectionNegotiator(self.settings, self.debug_util)
        with DatabaseManager(self.params, negotiator, self.debug_util) as db:
            for index, statement in enumerate(statements, start=1):
                self.debug_util.debugMessage(
                    f"Statement {index}/{len(statements)} ({statement.kind.value})"
                )
                output = self._run_statement(db, statement, byte_input)
                if output is not None:
                    outputs.append(output)

        if not outputs:
            return None
        if len(outputs) == 1:
            return outputs[0]
        return ListValue(items=outputs)

    def _run_statement(
        self, db: DatabaseManager, statement: ParsedStatement, byte_input: Optional[bytes]
    ) -> Optional[ListValue]:
        match statement.kind:
            case StatementKind.ROW_PRODUCING:
                return db.query(statement.sql)
            case StatementKind.BULK_COPY_IN:
                db.copy_in(statement.sql, byte_input or b"")
                return None
            case StatementKind.BULK_COPY_OUT:
                raise UnsupportedOperationError(
                    "COPY ... TO STDOUT is not supported",
                    hint="Use a SELECT statement to read rows, or COPY TO a server-side file",
                )
            case StatementKind.OTHER:
                db.execute(statement.sql)
                return None
            case _:
                assert_never(statement.kind)


def run_script(
    script: str,
    byte_input: Optional[bytes] = None,
    environ: Optional[Mapping[str, str]] = None,
    url: Optional[str] = None,
) -> Optional[Value]:
    """Run ``script`` using settings and the connection URL from the environment.

    Args:
        script: SQL script to run.
        byte_input: Bytes for ``COPY ... FROM STDIN`` statements.
        environ: Environment mapping; ``os.environ`` when omitted.
        url: Connection URL overriding ``PG_URL``.

    Raises:
        ConfigurationError: If settings or the connection URL are missing or invalid.
    """
    settings = load_settings(environ)
    params = parse_connection_url(url if url is not None else load_connection_url(environ=environ))
    return QueryService(params, settings).execute(script, byte_input)
