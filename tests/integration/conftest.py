"""Fixtures that run the query service against a real PostgreSQL in Docker.

The whole directory is skipped when the Docker daemon cannot be reached.
"""

import contextlib
import logging
import time
import uuid
from typing import Any, Dict, Generator

import psycopg2
import pytest

logger = logging.getLogger(__name__)

POSTGRES_IMAGE = "postgres:16-alpine"
POSTGRES_USER = "pytest_user"
POSTGRES_PASSWORD = "pytest_pass"
POSTGRES_DB = "pytest_db"


def _wait_for_postgres(params: Dict[str, Any], timeout: float = 45.0) -> None:
    deadline = time.monotonic() + timeout
    last_err: Exception | None = None
    while time.monotonic() < deadline:
        try:
            conn = psycopg2.connect(connect_timeout=5, sslmode="disable", **params)
            conn.close()
            return
        except psycopg2.OperationalError as exc:
            last_err = exc
            time.sleep(1)
    raise RuntimeError(f"Timed out waiting for PostgreSQL to become ready: {last_err}")


@pytest.fixture(scope="session")
def docker_postgres() -> Generator[Dict[str, Any], None, None]:
    """Start a PostgreSQL container for the session and return its connection parameters."""
    docker = pytest.importorskip("docker")
    try:
        client = docker.from_env()
        client.ping()
    except Exception as exc:  # docker raises several unrelated types when the daemon is absent
        pytest.skip(f"Docker daemon is not available: {exc}")

    container_name = f"pgscript-test-{uuid.uuid4().hex[:8]}"
    logger.info("Starting PostgreSQL container '%s'", container_name)
    container = client.containers.run(
        POSTGRES_IMAGE,
        detach=True,
        remove=True,
        name=container_name,
        environment={
            "POSTGRES_USER": POSTGRES_USER,
            "POSTGRES_PASSWORD": POSTGRES_PASSWORD,
            "POSTGRES_DB": POSTGRES_DB,
        },
        ports={"5432/tcp": ("127.0.0.1", None)},
    )
    try:
        container.reload()
        mapping = container.attrs["NetworkSettings"]["Ports"]["5432/tcp"]
        params = {
            "host": "127.0.0.1",
            "port": int(mapping[0]["HostPort"]),
            "user": POSTGRES_USER,
            "password": POSTGRES_PASSWORD,
        }
        _wait_for_postgres({**params, "dbname": POSTGRES_DB})
        yield params
    finally:
        with contextlib.suppress(Exception):
            container.stop()


@pytest.fixture
def pg_url(docker_postgres: Dict[str, Any]) -> Generator[str, None, None]:
    """Create an isolated database per test and yield a URL for it (sslmode not set)."""
    db_name = f"test_db_{uuid.uuid4().hex[:8]}"
    admin = psycopg2.connect(dbname="postgres", sslmode="disable", **docker_postgres)
    admin.autocommit = True
    with admin.cursor() as cursor:
        cursor.execute(f'CREATE DATABASE "{db_name}"')
    try:
        yield (
            f"postgresql://{docker_postgres['user']}:{docker_postgres['password']}"
            f"@{docker_postgres['host']}:{docker_postgres['port']}/{db_name}"
        )
    finally:
        with admin.cursor() as cursor:
            cursor.execute(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                "WHERE datname = %s AND pid <> pg_backend_pid()",
                (db_name,),
            )
            cursor.execute(f'DROP DATABASE IF EXISTS "{db_name}"')
        admin.close()
