"""
Acceptance test fixtures — PostgreSQL testcontainer for end-to-end tests.

Reuses the schema and truncation helpers of the integration tests but is
scoped for acceptance.
"""

from __future__ import annotations

from collections.abc import Iterator

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

from temporary_access.adapters.repository import schema_ddl
from tests.integration.conftest import TRUNCATE_ALL, connection_url


@pytest.fixture(scope="session")
def acceptance_pg() -> Iterator[PostgresContainer]:
    """Start a PostgreSQL container for the acceptance test session."""
    with PostgresContainer("postgres:16-alpine") as pg:
        with psycopg.connect(connection_url(pg)) as conn:
            conn.execute(schema_ddl())
            conn.commit()
        yield pg


@pytest.fixture()
def acceptance_dsn(acceptance_pg: PostgresContainer) -> str:
    """Return a psycopg-compatible DSN and truncate the token table before each test."""
    url = connection_url(acceptance_pg)
    with psycopg.connect(url) as conn:
        conn.execute(TRUNCATE_ALL)
        conn.commit()
    return url
