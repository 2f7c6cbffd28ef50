"""
In-memory repository adapter — implements the TokenRepository port.

Rows live in a dict keyed by (owner_id, token), guarded by a single lock
so every call is atomic with respect to the others. Owner ids are kept as
text, matching the PostgreSQL adapter.

Suited to tests and to single-process embedders that can afford losing
all tokens on restart.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import structlog

from temporary_access.domain.errors import DuplicateTokenError
from temporary_access.domain.models import (
    AccessToken,
    AttributeQuery,
    Clock,
    OwnerId,
    TokenField,
    resolve_fields,
    utc_now,
)

log = structlog.get_logger()

type _Key = tuple[str, str]


class InMemoryTokenRepository:
    """Thread-safe dict-backed token storage."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._rows: dict[_Key, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def store(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> AccessToken:
        key = (str(owner_id), token)
        row = {
            TokenField.OWNER_ID.value: key[0],
            TokenField.TOKEN.value: token,
            TokenField.CREATED_AT.value: self._clock(),
            TokenField.EXPIRES_AT.value: expires_at,
        }
        with self._lock:
            if key in self._rows:
                raise DuplicateTokenError(owner_id)
            self._rows[key] = row
        return AccessToken.from_row(row)

    def retrieve(self, owner_id: OwnerId, token: str) -> AccessToken | None:
        with self._lock:
            row = self._rows.get((str(owner_id), token))
            if row is None:
                return None
            access_token = AccessToken.from_row(row)
        return access_token if access_token.is_valid(self._clock()) else None

    def retrieve_by_attributes(
        self,
        query: AttributeQuery,
        fields: Sequence[TokenField],
    ) -> AccessToken | None:
        columns = [f.value for f in resolve_fields(fields)]
        with self._lock:
            matches = [row for row in self._rows.values() if query.matches(row)]
        if not matches:
            return None
        first = min(matches, key=lambda row: row[TokenField.CREATED_AT.value])
        return AccessToken.from_row({column: first[column] for column in columns})

    def update(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> bool:
        with self._lock:
            row = self._rows.get((str(owner_id), token))
            if row is None:
                return False
            row[TokenField.EXPIRES_AT.value] = expires_at
        return True

    def delete(self, owner_id: OwnerId, token: str) -> bool:
        with self._lock:
            return self._rows.pop((str(owner_id), token), None) is not None

    def delete_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, row in self._rows.items()
                if AccessToken.from_row(row).is_expired(now)
            ]
            for key in expired:
                del self._rows[key]
        log.info("repository.swept", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
