"""Service layer: running SQL scripts end to end."""

from .query_service import QueryService, run_script  # noqa: F401
