"""
Integration test fixtures — PostgreSQL testcontainer and schema setup.

Provides a real PostgreSQL instance for each test session via testcontainers.
The token table is created from the adapter's own DDL, and every test gets
a clean table via truncation.
"""

from __future__ import annotations

from collections.abc import Iterator

import psycopg
import pytest
from psycopg import sql
from testcontainers.postgres import PostgresContainer

from temporary_access.adapters.repository import DEFAULT_TABLE, schema_ddl

TRUNCATE_ALL = sql.SQL("TRUNCATE {table}").format(table=sql.Identifier(DEFAULT_TABLE))


def connection_url(container: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN for the container."""
    return container.get_connection_url().replace("postgresql+psycopg2", "postgresql")


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Start a PostgreSQL container for the entire test session."""
    with PostgresContainer("postgres:16-alpine") as pg:
        with psycopg.connect(connection_url(pg)) as conn:
            conn.execute(schema_ddl())
            conn.commit()
        yield pg


@pytest.fixture()
def dsn(postgres_container: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN and truncate the token table before each test."""
    url = connection_url(postgres_container)
    with psycopg.connect(url) as conn:
        conn.execute(TRUNCATE_ALL)
        conn.commit()
    return url
