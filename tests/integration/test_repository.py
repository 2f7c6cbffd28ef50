"""
Integration tests for PsycopgTokenRepository.

Tests run against a real PostgreSQL instance via testcontainers and
exercise the same contract as the in-memory adapter: duplicate policy,
expiry-filtered retrieval, attribute queries, and the expiry sweep.

Markers: @pytest.mark.integration — requires Docker + PostgreSQL.
"""

from __future__ import annotations

from datetime import timedelta

import psycopg
import pytest
from psycopg import errors, sql

from temporary_access.adapters.repository import DEFAULT_TABLE, PsycopgTokenRepository, schema_ddl
from temporary_access.domain.errors import DuplicateTokenError
from temporary_access.domain.models import ALL_FIELDS, AttributeQuery, Operator, TokenField
from temporary_access.domain.ports import TokenRepository
from tests.conftest import EPOCH, FrozenClock

pytestmark = pytest.mark.integration


# ── Helpers ──────────────────────────────────────────────────────────────────


def _count_rows(dsn: str, table: str = DEFAULT_TABLE) -> int:
    """Count rows in the token table."""
    with psycopg.connect(dsn) as conn:
        row = conn.execute(sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(table))).fetchone()
        return row[0] if row else 0


@pytest.fixture()
def repo(dsn: str, clock: FrozenClock) -> PsycopgTokenRepository:
    return PsycopgTokenRepository(dsn, clock=clock)


# ── Test: Store ──────────────────────────────────────────────────────────────


class TestStore:
    """Verify inserts and the duplicate policy."""

    def test_satisfies_port(self, repo: PsycopgTokenRepository) -> None:
        assert isinstance(repo, TokenRepository)

    def test_store_returns_row(self, repo: PsycopgTokenRepository, dsn: str) -> None:
        """
        GIVEN an owner id, token and expiry
        WHEN stored
        THEN the returned token carries the stored values with created_at from the clock
        AND exactly one row exists.
        """
        stored = repo.store(42, "tok", EPOCH + timedelta(minutes=10))

        assert stored.owner_id == "42"
        assert stored.token == "tok"
        assert stored.created_at == EPOCH
        assert stored.expires_at == EPOCH + timedelta(minutes=10)
        assert stored.plain is None
        assert _count_rows(dsn) == 1

    def test_store_without_expiry(self, repo: PsycopgTokenRepository) -> None:
        assert repo.store(42, "tok", None).expires_at is None

    def test_duplicate_raises(self, repo: PsycopgTokenRepository, dsn: str) -> None:
        """
        GIVEN a stored (owner, token) pair
        WHEN stored again
        THEN DuplicateTokenError is raised and the first row is untouched.
        """
        repo.store(42, "tok", None)

        with pytest.raises(DuplicateTokenError) as exc_info:
            repo.store(42, "tok", EPOCH)

        assert isinstance(exc_info.value.__cause__, errors.UniqueViolation)
        assert _count_rows(dsn) == 1
        assert repo.retrieve(42, "tok").expires_at is None  # type: ignore[union-attr]


# ── Test: Retrieve ───────────────────────────────────────────────────────────


class TestRetrieve:
    """retrieve() filters expired rows in SQL."""

    def test_live_row(self, repo: PsycopgTokenRepository) -> None:
        stored = repo.store(42, "tok", EPOCH + timedelta(minutes=10))
        assert repo.retrieve("42", "tok") == stored

    def test_expired_row_hidden(self, repo: PsycopgTokenRepository, clock: FrozenClock) -> None:
        repo.store(42, "tok", EPOCH + timedelta(minutes=10))
        clock.advance(minutes=10)
        assert repo.retrieve(42, "tok") is None

    def test_other_owner(self, repo: PsycopgTokenRepository) -> None:
        repo.store(42, "tok", None)
        assert repo.retrieve(43, "tok") is None


# ── Test: Attribute queries ──────────────────────────────────────────────────


class TestRetrieveByAttributes:
    """Criteria compile to parameterized SQL."""

    def test_oldest_match_first(self, repo: PsycopgTokenRepository, clock: FrozenClock) -> None:
        first = repo.store(42, "a", None)
        clock.advance(seconds=1)
        repo.store(42, "b", None)
        assert repo.retrieve_by_attributes(AttributeQuery.where(owner_id=42), ALL_FIELDS) == first

    def test_range_and_null(self, repo: PsycopgTokenRepository) -> None:
        repo.store(1, "short", EPOCH + timedelta(minutes=1))
        repo.store(2, "long", EPOCH + timedelta(hours=1))
        repo.store(3, "forever", None)

        later = AttributeQuery().and_(TokenField.EXPIRES_AT, Operator.GT, EPOCH + timedelta(minutes=30))
        unlimited = AttributeQuery.where(expires_at=None)

        assert repo.retrieve_by_attributes(later, ALL_FIELDS).token == "long"  # type: ignore[union-attr]
        assert repo.retrieve_by_attributes(unlimited, ALL_FIELDS).token == "forever"  # type: ignore[union-attr]

    def test_projection_without_expiry(self, repo: PsycopgTokenRepository) -> None:
        repo.store(42, "tok", EPOCH + timedelta(minutes=1))
        found = repo.retrieve_by_attributes(AttributeQuery.where(token="tok"), [TokenField.TOKEN])
        assert found is not None
        assert found.expires_at is None

    def test_not_equal_skips_rows_without_expiry(self, repo: PsycopgTokenRepository) -> None:
        repo.store(1, "forever", None)
        query = AttributeQuery().and_(TokenField.EXPIRES_AT, Operator.NE, EPOCH)
        assert repo.retrieve_by_attributes(query, ALL_FIELDS) is None

        repo.store(2, "hourly", EPOCH + timedelta(hours=1))
        assert repo.retrieve_by_attributes(query, ALL_FIELDS).token == "hourly"  # type: ignore[union-attr]

    def test_no_match(self, repo: PsycopgTokenRepository) -> None:
        assert repo.retrieve_by_attributes(AttributeQuery.where(owner_id=1), ALL_FIELDS) is None


# ── Test: Update / delete / sweep ────────────────────────────────────────────


class TestWrites:
    """Writes report whether a row was affected."""

    def test_update(self, repo: PsycopgTokenRepository) -> None:
        repo.store(42, "tok", EPOCH + timedelta(minutes=1))
        assert repo.update(42, "tok", EPOCH + timedelta(minutes=5)) is True
        assert repo.retrieve(42, "tok").expires_at == EPOCH + timedelta(minutes=5)  # type: ignore[union-attr]

    def test_update_missing(self, repo: PsycopgTokenRepository) -> None:
        assert repo.update(42, "nope", None) is False

    def test_delete(self, repo: PsycopgTokenRepository, dsn: str) -> None:
        repo.store(42, "tok", None)
        assert repo.delete(42, "tok") is True
        assert repo.delete(42, "tok") is False
        assert _count_rows(dsn) == 0

    def test_delete_expired(self, repo: PsycopgTokenRepository, clock: FrozenClock, dsn: str) -> None:
        """
        GIVEN one expired, one live and one non-expiring token
        WHEN the sweep runs
        THEN only the expired row is removed.
        """
        repo.store(1, "expired", EPOCH + timedelta(minutes=1))
        repo.store(2, "live", EPOCH + timedelta(hours=1))
        repo.store(3, "forever", None)
        clock.advance(minutes=5)

        assert repo.delete_expired() == 1
        assert _count_rows(dsn) == 2


class TestSchema:
    """The adapter can create its own table under a custom name."""

    def test_ensure_schema_custom_table(self, dsn: str, clock: FrozenClock) -> None:
        repo = PsycopgTokenRepository(dsn, table="otp_tokens", clock=clock)
        repo.ensure_schema()
        repo.ensure_schema()

        repo.store(42, "tok", None)

        assert _count_rows(dsn, "otp_tokens") == 1
        assert _count_rows(dsn) == 0

    def test_ddl_quotes_table_name(self, dsn: str) -> None:
        with psycopg.connect(dsn) as conn:
            rendered = schema_ddl("Mixed Case").as_string(conn)
        assert '"Mixed Case"' in rendered
        assert '"Mixed Case_expires_at_idx"' in rendered
