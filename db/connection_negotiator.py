"""SSL-mode-aware connection establishment.

Supported sslmode values:

- ``disable``: plaintext only.
- ``require``: TLS only, verified against the configured root certificates.
- ``prefer``: TLS first, then plaintext. When both fail, both causes are
  reported together.

Any other sslmode is rejected before a connection is attempted.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, Optional, cast

import psycopg2
from psycopg2 import extras as psycopg2_extras

from db.config import Settings
from db.exceptions import DBConnectionError, UnsupportedSslModeError
from db.interfaces import ConnectionProtocol
from helpers.debug_util import DebugUtil
from models.connection_params import ConnectionParams

logger = logging.getLogger(__name__)


class Transport(enum.Enum):
    """How a single connection attempt is made."""

    TLS = "tls"
    PLAINTEXT = "plaintext"


def _raw_json(text: str) -> str:
    return text


class ConnectionNegotiator:
    """Open one live connection according to the requested sslmode."""

    def __init__(self, settings: Optional[Settings] = None, debug_util: Optional[DebugUtil] = None) -> None:
        """Initialize the negotiator.

        Args:
            settings: Connection settings; defaults are used when omitted.
            debug_util: Optional DebugUtil instance for handling debug output.
        """
        self.settings = settings or Settings()
        self.debug_util = debug_util or DebugUtil(self.settings.debug_mode)

    def connect(self, params: ConnectionParams) -> ConnectionProtocol:
        """Establish a connection using the sslmode in ``params``.

        Returns:
            An open connection in autocommit mode.

        Raises:
            UnsupportedSslModeError: If the sslmode has no connection strategy.
            DBConnectionError: If every allowed attempt failed.
        """
        mode = params.sslmode
        if mode == "disable":
            return self._attempt(params, Transport.PLAINTEXT)
        if mode == "require":
            return self._attempt(params, Transport.TLS)
        if mode == "prefer":
            return self._connect_prefer(params)
        raise UnsupportedSslModeError(
            f"sslmode '{mode}' is not implemented",
            hint="Use one of: disable, prefer, require",
        )

    def _connect_prefer(self, params: ConnectionParams) -> ConnectionProtocol:
        try:
            return self._attempt(params, Transport.TLS)
        except DBConnectionError as tls_error:
            tls_failure = tls_error
        logger.info("TLS connection failed, retrying without TLS: %s", tls_failure.message)

        try:
            return self._attempt(params, Transport.PLAINTEXT)
        except DBConnectionError as plain_error:
            plain_failure = plain_error

        raise DBConnectionError(
            f"Failed to connect to PostgreSQL: {tls_failure.message}; {plain_failure.message}",
            inner=(tls_failure, plain_failure),
        )

    def _attempt(self, params: ConnectionParams, transport: Transport) -> ConnectionProtocol:
        kwargs = self._connect_kwargs(params, transport)
        self.debug_util.debugMessage(
            f"Connecting to host={kwargs.get('host')} port={kwargs.get('port')} "
            f"dbname={kwargs.get('dbname')} via {transport.value}"
        )
        try:
            conn = psycopg2.connect(**kwargs)
        except psycopg2.Error as e:
            self.debug_util.debugMessage(f"{transport.value} connection failed: {e}")
            raise DBConnectionError(
                f"{transport.value} connection failed: {str(e).strip()}",
                code=getattr(e, "pgcode", None),
            ) from e

        conn.autocommit = True
        # JSON arrives as text; the row decoder converts it.
        psycopg2_extras.register_default_json(conn, loads=_raw_json)
        psycopg2_extras.register_default_jsonb(conn, loads=_raw_json)
        logger.info("Connected to PostgreSQL via %s", transport.value)
        return cast(ConnectionProtocol, conn)

    def _connect_kwargs(self, params: ConnectionParams, transport: Transport) -> Dict[str, object]:
        kwargs = params.connect_kwargs()
        kwargs.setdefault("connect_timeout", self.settings.connect_timeout)
        if transport is Transport.TLS:
            kwargs["sslmode"] = "verify-full"
            kwargs["sslrootcert"] = self.settings.ssl_root_cert
        else:
            kwargs["sslmode"] = "disable"
        return kwargs
