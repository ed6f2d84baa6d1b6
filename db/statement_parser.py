"""Parse a SQL script and classify each statement.

The whole script is parsed before anything runs, so a syntax error in
any statement means no statement is executed. sqlglot's tree is used only
to classify; the server receives each statement exactly as written.
"""

from __future__ import annotations

import enum
import logging
from typing import List, Optional, Sequence, Tuple

import sqlglot
from pydantic import BaseModel, ConfigDict
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from sqlglot.tokens import Token, TokenType

from db.exceptions import SqlSyntaxError

logger = logging.getLogger(__name__)

DIALECT = "postgres"

# Statements that return rows but that sqlglot does not model as queries.
ROW_PRODUCING_KEYWORDS = frozenset({"TABLE", "VALUES"})


class StatementKind(enum.Enum):
    """How a statement is executed."""

    ROW_PRODUCING = "row_producing"
    BULK_COPY_IN = "bulk_copy_in"
    BULK_COPY_OUT = "bulk_copy_out"
    OTHER = "other"


class ParsedStatement(BaseModel):
    """One statement of a script.

    Attributes:
        kind: Execution strategy chosen at parse time.
        sql: Source text of the statement, without its terminating ``;``.
    """

    model_config = ConfigDict(frozen=True)

    kind: StatementKind
    sql: str


def parse_script(script: str) -> List[ParsedStatement]:
    """Parse ``script`` into statements in source order.

    Empty statements (for example a trailing ``;``) are dropped.

    Raises:
        SqlSyntaxError: If any part of the script fails to parse.
    """
    statements = []
    for sql, tokens in split_statements(script):
        try:
            expressions = [e for e in sqlglot.parse(sql, read=DIALECT) if e is not None]
        except (ParseError, TokenError) as e:
            raise SqlSyntaxError(f"Failed to parse SQL: {e}") from e
        if not expressions:
            continue
        statement = ParsedStatement(kind=classify(expressions[0], tokens), sql=sql)
        logger.debug("Parsed %s statement: %s", statement.kind.value, sql)
        statements.append(statement)
    return statements


def split_statements(script: str) -> List[Tuple[str, List[Token]]]:
    """Cut ``script`` at its semicolons into source slices and their tokens.

    Each slice runs from the first to the last token of the statement, so
    comments and whitespace around it are dropped while everything inside,
    quoting included, is kept verbatim.

    Raises:
        SqlSyntaxError: If the script cannot be tokenized.
    """
    try:
        tokens = sqlglot.tokenize(script, read=DIALECT)
    except TokenError as e:
        raise SqlSyntaxError(f"Failed to parse SQL: {e}") from e

    chunks: List[Tuple[str, List[Token]]] = []
    current: List[Token] = []
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            if current:
                chunks.append((script[current[0].start : current[-1].end + 1], current))
            current = []
        else:
            current.append(token)
    if current:
        chunks.append((script[current[0].start : current[-1].end + 1], current))
    return chunks


def classify(expression: exp.Expression, tokens: Sequence[Token]) -> StatementKind:
    """Choose the execution strategy for one parsed statement."""
    if isinstance(expression, (exp.Query, exp.Values)):
        return StatementKind.ROW_PRODUCING
    leading = tokens[0].text.upper() if tokens else ""
    if leading in ROW_PRODUCING_KEYWORDS:
        return StatementKind.ROW_PRODUCING
    if leading == "COPY" or _is_copy(expression):
        return _classify_copy(tokens)
    return StatementKind.OTHER


def _is_copy(expression: exp.Expression) -> bool:
    if isinstance(expression, exp.Copy):
        return True
    return isinstance(expression, exp.Command) and str(expression.this).upper() == "COPY"


def _classify_copy(tokens: Sequence[Token]) -> StatementKind:
    """Classify a COPY by its client-side endpoint.

    ``FROM STDIN`` streams client bytes in and ``TO STDOUT`` streams rows
    out to the client. Files and programs are handled on the server.
    """
    direction, target = _copy_endpoint(tokens)
    if direction == "FROM" and target == "STDIN":
        return StatementKind.BULK_COPY_IN
    if direction == "TO" and target == "STDOUT":
        return StatementKind.BULK_COPY_OUT
    return StatementKind.OTHER


def _copy_endpoint(tokens: Sequence[Token]) -> Tuple[Optional[str], Optional[str]]:
    # The first FROM/TO outside parentheses; a parenthesized query may contain its own FROM.
    depth = 0
    for index, token in enumerate(tokens):
        if token.token_type == TokenType.L_PAREN:
            depth += 1
        elif token.token_type == TokenType.R_PAREN:
            depth -= 1
        elif depth == 0 and token.token_type != TokenType.STRING and token.text.upper() in ("FROM", "TO"):
            target = tokens[index + 1].text.upper() if index + 1 < len(tokens) else None
            return token.text.upper(), target
    return None, None
