"""
Domain models — immutable values for access codes, access tokens and queries.

AccessCode is what a generator produces: the plain code shown to the user
once, and the encrypted form that is safe to persist and compare.

AccessToken is what storage holds: the encrypted code bound to an owner,
with its creation and expiry timestamps. Prolonging a token returns a new
value; writing it back is a separate, explicit repository call.

All models are frozen dataclasses. Secrets are kept out of repr().
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import Enum, unique
from typing import Any

type OwnerId = str | int
type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def require_aware(moment: datetime | None) -> datetime | None:
    """
    Reject naive datetimes.

    Clocks are timezone-aware, and a naive expiry cannot be compared with them.
    """
    if moment is not None and moment.utcoffset() is None:
        raise ValueError(f"Expiry must be timezone-aware, got naive {moment.isoformat()}")
    return moment


@dataclass(frozen=True, slots=True)
class AccessCode:
    """
    A generated code in both of its forms.

    `encrypted` is a pure function of `plain` for a given generator, so a
    code typed back by a user can be re-derived and looked up without the
    plain text ever being stored. str() yields the encrypted form.
    """

    plain: str = field(repr=False)
    encrypted: str

    def __str__(self) -> str:
        return self.encrypted


@dataclass(frozen=True, slots=True)
class AccessToken:
    """
    An issued credential as stored for its owner.

    `plain` is only populated on the value returned right after issuance.
    It takes no part in equality, so the issued token compares equal to
    the same row read back from storage.
    """

    owner_id: OwnerId
    token: str
    created_at: datetime
    expires_at: datetime | None = None
    plain: str | None = field(default=None, repr=False, compare=False)

    @property
    def encrypted(self) -> str:
        return self.token

    def is_valid(self, now: datetime) -> bool:
        """A token is valid while it has no expiry or its expiry lies strictly after now."""
        return self.expires_at is None or self.expires_at > now

    def is_expired(self, now: datetime) -> bool:
        return not self.is_valid(now)

    def prolong(self, seconds: int) -> AccessToken:
        """
        Return a copy whose expiry is pushed `seconds` past the current expiry.

        A token without expiry has nothing to extend and is returned as is.
        """
        if self.expires_at is None:
            return self
        return replace(self, expires_at=self.expires_at + timedelta(seconds=seconds))

    def without_plain(self) -> AccessToken:
        return replace(self, plain=None)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AccessToken:
        """Build a token from a storage row keyed by TokenField values."""
        return cls(
            owner_id=row[TokenField.OWNER_ID.value],
            token=row[TokenField.TOKEN.value],
            created_at=row[TokenField.CREATED_AT.value],
            expires_at=row.get(TokenField.EXPIRES_AT.value),
        )


# ─────────────────────── Attribute queries ───────────────────────


@unique
class TokenField(Enum):
    """Columns a stored access token can be queried and projected on."""

    OWNER_ID = "owner_id"
    TOKEN = "token"
    CREATED_AT = "created_at"
    EXPIRES_AT = "expires_at"


ALL_FIELDS: tuple[TokenField, ...] = tuple(TokenField)

# An AccessToken cannot be built without these, so they are always read.
REQUIRED_FIELDS: tuple[TokenField, ...] = (
    TokenField.OWNER_ID,
    TokenField.TOKEN,
    TokenField.CREATED_AT,
)


def resolve_fields(fields: Iterable[TokenField]) -> tuple[TokenField, ...]:
    """Merge the requested projection with the required columns, keeping column order."""
    wanted = set(fields) | set(REQUIRED_FIELDS)
    return tuple(f for f in ALL_FIELDS if f in wanted)


@unique
class Operator(Enum):
    """Comparison operators supported by attribute queries."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def compare(self) -> Callable[[Any, Any], bool]:
        return _COMPARATORS[self]


_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}


@dataclass(frozen=True, slots=True)
class Criterion:
    """One `field <operator> value` condition."""

    field: TokenField
    operator: Operator
    value: Any

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.field.value)
        if actual is None or self.value is None:
            # SQL NULL semantics: a NULL column only satisfies IS NULL.
            if self.operator is Operator.EQ:
                return actual is None and self.value is None
            if self.operator is Operator.NE:
                return self.value is None and actual is not None
            return False
        if self.field is TokenField.OWNER_ID:
            return self.operator.compare(str(actual), str(self.value))
        return self.operator.compare(actual, self.value)


@dataclass(frozen=True, slots=True)
class AttributeQuery:
    """
    An ordered list of criteria, all of which must hold.

        AttributeQuery.where(owner_id=42).and_(TokenField.EXPIRES_AT, Operator.GT, now)
    """

    criteria: tuple[Criterion, ...] = ()

    @classmethod
    def where(cls, **pairs: Any) -> AttributeQuery:
        """
        Build an equality query from keyword pairs named after TokenField values.

        Raises ValueError for an unknown field name.
        """
        return cls(tuple(Criterion(TokenField(name), Operator.EQ, value) for name, value in pairs.items()))

    def and_(self, field: TokenField, op: Operator, value: Any) -> AttributeQuery:
        return AttributeQuery((*self.criteria, Criterion(field, op, value)))

    def matches(self, row: Mapping[str, Any]) -> bool:
        return all(criterion.matches(row) for criterion in self.criteria)

    def __iter__(self) -> Iterator[Criterion]:
        return iter(self.criteria)

    def __len__(self) -> int:
        return len(self.criteria)
