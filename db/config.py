"""Runtime settings read from the environment.

Only the edges of the application (the CLI and ``run_script``) call into
this module; the query service itself takes explicit parameters.
"""

from __future__ import annotations

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from db.exceptions import ConfigurationError
from models.connection_params import URL_HINT

CONNECTION_URL_VAR = "PG_URL"
CONNECT_TIMEOUT_VAR = "PGSCRIPT_CONNECT_TIMEOUT"
SSL_ROOT_CERT_VAR = "PGSCRIPT_SSL_ROOT_CERT"
DEBUG_MODE_VAR = "PGSCRIPT_DEBUG_MODE"


class Settings(BaseModel):
    """Settings that shape how connections are made.

    Attributes:
        connect_timeout: Seconds allowed for each connection attempt when the
            URL does not set its own ``connect_timeout``.
        ssl_root_cert: libpq ``sslrootcert`` used for TLS attempts. ``system``
            selects the platform's public root certificates.
        debug_mode: ``quiet`` logs debug output, ``loud`` prints it.
    """

    model_config = ConfigDict(frozen=True)

    connect_timeout: int = Field(default=10, gt=0)
    ssl_root_cert: str = "system"
    debug_mode: Literal["quiet", "loud"] = "quiet"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    Raises:
        ConfigurationError: If a variable is present but invalid.
    """
    env = os.environ if environ is None else environ
    values = {}
    if env.get(CONNECT_TIMEOUT_VAR):
        values["connect_timeout"] = env[CONNECT_TIMEOUT_VAR]
    if env.get(SSL_ROOT_CERT_VAR):
        values["ssl_root_cert"] = env[SSL_ROOT_CERT_VAR]
    if env.get(DEBUG_MODE_VAR):
        values["debug_mode"] = env[DEBUG_MODE_VAR].lower()
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in environment: {e}") from e


def load_connection_url(
    name: str = CONNECTION_URL_VAR, environ: Optional[Mapping[str, object]] = None
) -> str:
    """Return the connection URL stored under ``name``.

    Raises:
        ConfigurationError: If the variable is missing or is not text.
    """
    env: Mapping[str, object] = os.environ if environ is None else environ
    if name not in env:
        raise ConfigurationError(f"Environment variable '{name}' not found", hint=URL_HINT)
    value = env[name]
    if not isinstance(value, str):
        raise ConfigurationError(f"Environment variable '{name}' is not a string", hint=URL_HINT)
    return value
