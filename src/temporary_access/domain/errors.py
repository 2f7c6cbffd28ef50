"""
Domain errors — the exceptions this package raises itself.

Absence of a token is never an error: lookups return None and checks
return False. Exceptions are reserved for malformed input and for
storage contract violations. Any other storage failure propagates from
the adapter untouched.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """Stable machine-readable codes carried by every TemporaryAccessError."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """User-supplied code text cannot be parsed as an access code."""

    DUPLICATE_TOKEN = "DUPLICATE_TOKEN"
    """A row for the same (owner_id, token) pair already exists."""


class TemporaryAccessError(Exception):
    """Base class for errors raised by temporary_access."""

    code: ErrorCode

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class InvalidCodeFormat(TemporaryAccessError):
    """
    The supplied plain text is not a well-formed access code.

    Only the length of the rejected input is kept, never the input itself,
    so the exception is safe to log.
    """

    def __init__(self, message: str, *, length: int | None = None) -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message)
        self.length = length


class DuplicateTokenError(TemporaryAccessError):
    """store() was called for an (owner_id, token) pair that already exists."""

    def __init__(self, owner_id: str | int) -> None:
        super().__init__(
            ErrorCode.DUPLICATE_TOKEN,
            f"An access token with the same value already exists for owner {owner_id!r}",
        )
        self.owner_id = owner_id
