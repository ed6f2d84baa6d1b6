"""Helper utilities shared across the pgscript packages."""

from .debug_util import DebugUtil  # noqa: F401
