#!/usr/bin/env python3
"""
Command-line entry point: run a SQL script against PostgreSQL.

The connection URL is read from PG_URL unless --url is given. When stdin is
piped, its bytes feed any COPY ... FROM STDIN statement in the script.
Results are printed to stdout as JSON.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from db.exceptions import PgScriptError
from models.value import to_plain
from services.query_service import run_script

logger = logging.getLogger("pg_query")


def format_error(error: PgScriptError, indent: int = 0) -> str:
    """Render an error, its code, hint and nested causes as indented text."""
    pad = "  " * indent
    lines = [f"{pad}Error: {error.message}"]
    if error.code:
        lines.append(f"{pad}  code: {error.code}")
    if error.hint:
        lines.extend(f"{pad}  help: {line}" for line in error.hint.splitlines())
    for inner in error.inner:
        lines.append(format_error(inner, indent + 1))
    return "\n".join(lines)


def read_input(path: Optional[str]) -> Optional[bytes]:
    """Return bytes for COPY FROM STDIN from a file, piped stdin, or nothing."""
    if path:
        with open(path, "rb") as handle:
            return handle.read()
    if not sys.stdin.isatty():
        return sys.stdin.buffer.read()
    return None


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a SQL script against PostgreSQL")
    parser.add_argument("query", help="SQL script to execute")
    parser.add_argument("--url", help="Connection URL (defaults to $PG_URL)")
    parser.add_argument("--input", help="File whose bytes feed COPY ... FROM STDIN")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log connection details")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        result = run_script(args.query, read_input(args.input), url=args.url)
    except PgScriptError as e:
        logger.debug("Script failed", exc_info=True)
        print(format_error(e), file=sys.stderr)
        return 1

    if result is not None:
        print(json.dumps(to_plain(result), indent=2, ensure_ascii=False, allow_nan=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
