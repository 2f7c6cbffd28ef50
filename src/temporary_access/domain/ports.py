"""
Ports — Protocol-based interfaces for the collaborators of AccessService.

These define WHAT the service needs without specifying HOW it's done:

  AccessService ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy the
contract simply by implementing the methods — no inheritance.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from temporary_access.domain.models import (
    AccessCode,
    AccessToken,
    AttributeQuery,
    OwnerId,
    TokenField,
)


@runtime_checkable
class OwnerIdentifiable(Protocol):
    """
    Anything that can own an access token.

    The identifier must be stable and comparable; it is stored as text.
    """

    @property
    def auth_identifier(self) -> OwnerId: ...


@runtime_checkable
class TokenInformation(Protocol):
    """Something that already carries an encrypted code (AccessCode or AccessToken)."""

    @property
    def encrypted(self) -> str: ...


@runtime_checkable
class CodeGenerator(Protocol):
    """
    Port: mint access codes and re-derive them from user input.

    `from_plain(p).encrypted` must equal the `encrypted` value `generate`
    produced for the same plain text, for the lifetime of the generator's key.
    """

    def generate(self) -> AccessCode: ...

    def from_plain(self, plain_text: str) -> AccessCode:
        """Rebuild an AccessCode from typed text. Raises InvalidCodeFormat when malformed."""
        ...


@runtime_checkable
class TokenRepository(Protocol):
    """
    Port: durable storage for access tokens keyed by (owner_id, token).

    Every call is atomic for its key. `retrieve` only returns rows that are
    still valid; `delete_expired` never removes a valid row.
    """

    def store(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> AccessToken:
        """
        Insert a new row, stamping created_at.

        Raises DuplicateTokenError when the (owner_id, token) pair exists.
        """
        ...

    def retrieve(self, owner_id: OwnerId, token: str) -> AccessToken | None: ...

    def retrieve_by_attributes(
        self,
        query: AttributeQuery,
        fields: Sequence[TokenField],
    ) -> AccessToken | None:
        """Return the oldest row matching every criterion, expired or not."""
        ...

    def update(self, owner_id: OwnerId, token: str, expires_at: datetime | None) -> bool:
        """Overwrite the expiry of a row. Returns False when no row matched."""
        ...

    def delete(self, owner_id: OwnerId, token: str) -> bool: ...

    def delete_expired(self) -> int:
        """Remove every row whose expiry has passed and return how many went."""
        ...
