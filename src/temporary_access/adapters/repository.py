"""
PostgreSQL repository adapter — access token persistence.

Adapter layer — implements the TokenRepository port using psycopg (v3)
for sync PostgreSQL access with parameterized queries.

One short transaction per call; each statement touches a single
(owner_id, token) row except the expiry sweep, which is a single DELETE
and so never races a concurrent insert of a live row.

Table layout (see `schema_ddl`):
  owner_id    TEXT         — part of the primary key
  token       TEXT         — part of the primary key
  created_at  TIMESTAMPTZ
  expires_at  TIMESTAMPTZ  — NULL means no expiry

No ORM — raw SQL composed with psycopg.sql so the configurable table
name is always quoted as an identifier.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

import psycopg
import structlog
from psycopg import errors, sql
from psycopg.rows import dict_row

from temporary_access.domain.errors import DuplicateTokenError
from temporary_access.domain.models import (
    AccessToken,
    AttributeQuery,
    Clock,
    Criterion,
    Operator,
    OwnerId,
    TokenField,
    resolve_fields,
    utc_now,
)

log = structlog.get_logger()

DEFAULT_TABLE = "temporary_access_tokens"

_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    owner_id    TEXT        NOT NULL,
    token       TEXT        NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL,
    expires_at  TIMESTAMPTZ,
    PRIMARY KEY (owner_id, token)
);
CREATE INDEX IF NOT EXISTS {index} ON {table} (expires_at);
"""

_INSERT = """
INSERT INTO {table} (owner_id, token, created_at, expires_at)
VALUES (%s, %s, %s, %s)
RETURNING owner_id, token, created_at, expires_at
"""

_SELECT_VALID = """
SELECT owner_id, token, created_at, expires_at
FROM {table}
WHERE owner_id = %s AND token = %s AND (expires_at IS NULL OR expires_at > %s)
"""

_UPDATE = "UPDATE {table} SET expires_at = %s WHERE owner_id = %s AND token = %s"

_DELETE = "DELETE FROM {table} WHERE owner_id = %s AND token = %s"

_DELETE_EXPIRED = "DELETE FROM {table} WHERE expires_at IS NOT NULL AND expires_at <= %s"


def schema_ddl(table: str = DEFAULT_TABLE) -> sql.Composed:
    """Return the CREATE TABLE / CREATE INDEX statements for the given table name."""
    return sql.SQL(_DDL).format(
        table=sql.Identifier(table),
        index=sql.Identifier(f"{table}_expires_at_idx"),
    )


class PsycopgTokenRepository:
    """
    Persist access tokens to PostgreSQL.

    Implements the TokenRepository port. A unique-key violation on insert
    is reported as DuplicateTokenError; every other psycopg error
    propagates to the caller unchanged.
    """

    def __init__(self, dsn: str, table: str = DEFAULT_TABLE, clock: Clock = utc_now) -> None:
        self._dsn = dsn
        self._table = sql.Identifier(table)
        self._table_name = table
        self._clock = clock

    def ensure_schema(self) -> None:
        """Create the token table and its expiry index if they do not exist yet."""
        with psycopg.connect(self._dsn) as conn:
            conn.execute(schema_ddl(self._table_name))
        log.info("repository.schema_ready", table=self._table_name)

    def store(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> AccessToken:
        try:
            with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
                row = conn.execute(
                    self._sql(_INSERT),
                    (str(owner_id), token, self._clock(), expires_at),
                ).fetchone()
        except errors.UniqueViolation as exc:
            raise DuplicateTokenError(owner_id) from exc
        assert row is not None  # INSERT ... RETURNING yields exactly one row
        return AccessToken.from_row(row)

    def retrieve(self, owner_id: OwnerId, token: str) -> AccessToken | None:
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
            row = conn.execute(
                self._sql(_SELECT_VALID),
                (str(owner_id), token, self._clock()),
            ).fetchone()
        return AccessToken.from_row(row) if row else None

    def retrieve_by_attributes(
        self,
        query: AttributeQuery,
        fields: Sequence[TokenField],
    ) -> AccessToken | None:
        where, params = _compile_where(query)
        statement = sql.SQL("SELECT {columns} FROM {table} WHERE {where} ORDER BY created_at LIMIT 1").format(
            columns=sql.SQL(", ").join(sql.Identifier(f.value) for f in resolve_fields(fields)),
            table=self._table,
            where=where,
        )
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
            row = conn.execute(statement, params).fetchone()
        return AccessToken.from_row(row) if row else None

    def update(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> bool:
        with psycopg.connect(self._dsn) as conn:
            cur = conn.execute(self._sql(_UPDATE), (expires_at, str(owner_id), token))
            return cur.rowcount > 0

    def delete(self, owner_id: OwnerId, token: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            cur = conn.execute(self._sql(_DELETE), (str(owner_id), token))
            return cur.rowcount > 0

    def delete_expired(self) -> int:
        with psycopg.connect(self._dsn) as conn:
            cur = conn.execute(self._sql(_DELETE_EXPIRED), (self._clock(),))
            removed = cur.rowcount
        log.info("repository.swept", table=self._table_name, removed=removed)
        return removed

    def _sql(self, template: str) -> sql.Composed:
        return sql.SQL(template).format(table=self._table)


def _compile_where(query: AttributeQuery) -> tuple[sql.Composable, list[Any]]:
    """Translate criteria into an AND-ed WHERE clause and its parameters."""
    clauses: list[sql.Composable] = []
    params: list[Any] = []
    for criterion in query:
        clause, value = _compile_criterion(criterion)
        clauses.append(clause)
        params.extend(value)
    if not clauses:
        return sql.SQL("TRUE"), params
    return sql.SQL(" AND ").join(clauses), params


def _compile_criterion(criterion: Criterion) -> tuple[sql.Composable, list[Any]]:
    column = sql.Identifier(criterion.field.value)
    if criterion.value is None:
        if criterion.operator is Operator.EQ:
            return sql.SQL("{} IS NULL").format(column), []
        if criterion.operator is Operator.NE:
            return sql.SQL("{} IS NOT NULL").format(column), []
        return sql.SQL("FALSE"), []
    value = str(criterion.value) if criterion.field is TokenField.OWNER_ID else criterion.value
    return sql.SQL("{} {} %s").format(column, sql.SQL(criterion.operator.value)), [value]
