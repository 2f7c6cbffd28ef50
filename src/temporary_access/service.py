"""
AccessService — issue, look up, check, prolong and expire access tokens.

This is the only component with behaviour; everything it touches is a
value object or a port. It holds its two collaborators and a clock and
nothing else, so one instance can serve any number of concurrent callers.
Any locking belongs to the repository.

Absence is a value, not an exception:
  - lookups return None
  - checks return False
  - check-and-prolong returns False

InvalidCodeFormat propagates from the generator; repository errors
propagate untouched.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog

from temporary_access.domain.models import (
    ALL_FIELDS,
    AccessCode,
    AccessToken,
    AttributeQuery,
    Clock,
    OwnerId,
    TokenField,
    require_aware,
    utc_now,
)
from temporary_access.domain.ports import (
    CodeGenerator,
    OwnerIdentifiable,
    TokenInformation,
    TokenRepository,
)

log = structlog.get_logger()

type Owner = OwnerIdentifiable | OwnerId


def owner_identifier(owner: Owner) -> OwnerId:
    """Accept either a bare identifier or anything exposing `auth_identifier`."""
    if isinstance(owner, OwnerIdentifiable):
        return owner.auth_identifier
    return owner


class AccessService:
    """Stateless orchestrator over a TokenRepository and a CodeGenerator."""

    def __init__(
        self,
        repository: TokenRepository,
        code_generator: CodeGenerator,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._code_generator = code_generator
        self._clock = clock

    # ─────────────────────── Lookups ───────────────────────

    def retrieve_by_code(self, owner: Owner, plain_text: str | TokenInformation) -> AccessToken | None:
        """
        Find the owner's valid token for a code the user typed.

        Raw text is re-derived through the generator first; an AccessCode
        (or any other token information) is used as is.
        """
        if not isinstance(plain_text, TokenInformation):
            plain_text = self.make_access_code(plain_text)
        return self._retrieve_from_repository(owner_identifier(owner), plain_text.encrypted)

    def retrieve_by_token(self, owner: Owner, encrypted_text: str | TokenInformation) -> AccessToken | None:
        """Find the owner's valid token by its encrypted value."""
        if isinstance(encrypted_text, TokenInformation):
            encrypted_text = encrypted_text.encrypted
        return self._retrieve_from_repository(owner_identifier(owner), encrypted_text)

    def check_code(self, owner: Owner, plain_text: str | TokenInformation) -> bool:
        return self.retrieve_by_code(owner, plain_text) is not None

    def check_token(self, owner: Owner, encrypted_text: str | TokenInformation) -> bool:
        return self.retrieve_by_token(owner, encrypted_text) is not None

    def retrieve_by_attributes(
        self,
        query: AttributeQuery,
        fields: Sequence[TokenField] = ALL_FIELDS,
    ) -> AccessToken | None:
        """
        Return the first stored token matching every criterion of `query`.

        No expiry filtering happens here; add an EXPIRES_AT criterion to the
        query when only live tokens are wanted.
        """
        return self._repository.retrieve_by_attributes(query, fields)

    # ─────────────────────── Prolongation ───────────────────────

    def check_code_and_prolong(
        self,
        owner: Owner,
        plain_text: str | TokenInformation,
        prolong_minutes: int | None = None,
    ) -> AccessToken | bool:
        """
        Prolong the owner's token for a typed code if it is still valid.

        Without `prolong_minutes` the token gets its original lifespan back
        (see `prolong`). Returns the updated token, or False.
        """
        access_token = self.retrieve_by_code(owner, plain_text)
        if access_token is None:
            return False
        return self._prolong_and_update(access_token, prolong_minutes)

    def check_token_and_prolong(
        self,
        owner: Owner,
        encrypted_text: str | TokenInformation,
        prolong_minutes: int | None = None,
    ) -> AccessToken | bool:
        """Same as check_code_and_prolong, by encrypted value."""
        access_token = self.retrieve_by_token(owner, encrypted_text)
        if access_token is None:
            return False
        return self._prolong_and_update(access_token, prolong_minutes)

    def prolong(self, access_token: AccessToken, prolong_minutes: int | None = None) -> AccessToken:
        """
        Compute the prolonged token without persisting it.

        With `prolong_minutes` the expiry moves that many minutes past the
        current expiry. Without it (None or 0) the time elapsed since
        creation is added back: a token created at t0 to expire at t0 + D,
        prolonged at t1, ends at t1 + D. The base is created_at, not now.
        The elapsed time is absolute, so clock skew never shortens a token.
        """
        if prolong_minutes:
            seconds = prolong_minutes * 60
        else:
            seconds = int(abs(self._clock() - access_token.created_at).total_seconds())
        return access_token.prolong(seconds)

    # ─────────────────────── Mutations ───────────────────────

    def generate(self, owner: Owner, expires_at: datetime | None = None) -> AccessToken:
        """
        Issue a new access code for the owner.

        The returned token is the only value that ever carries the plain code.
        Raises ValueError for a naive `expires_at`.
        """
        require_aware(expires_at)
        access_code = self._code_generator.generate()
        owner_id = owner_identifier(owner)
        stored = self._repository.store(owner_id, access_code.encrypted, expires_at)
        log.info("access.generated", owner_id=owner_id, expires_at=_iso(expires_at))
        return AccessToken(
            owner_id=stored.owner_id,
            token=stored.token,
            created_at=stored.created_at,
            expires_at=stored.expires_at,
            plain=access_code.plain,
        )

    def update(self, access_token: AccessToken) -> bool:
        """Write the token's expiry back to storage. False when no row matched."""
        require_aware(access_token.expires_at)
        return self._repository.update(access_token.owner_id, access_token.token, access_token.expires_at)

    def delete(self, access_token: AccessToken) -> bool:
        deleted = self._repository.delete(access_token.owner_id, access_token.token)
        log.info("access.deleted", owner_id=access_token.owner_id, deleted=deleted)
        return deleted

    def delete_expired(self) -> int:
        """Ask storage to sweep expired tokens. The count is informational."""
        removed = self._repository.delete_expired()
        log.info("access.expired_swept", removed=removed)
        return removed

    def make_access_code(self, plain_text: str) -> AccessCode:
        """Revive an AccessCode from typed text. Raises InvalidCodeFormat when malformed."""
        return self._code_generator.from_plain(plain_text)

    # ─────────────────────── Internals ───────────────────────

    def _retrieve_from_repository(self, owner_id: OwnerId, encrypted_text: str) -> AccessToken | None:
        access_token = self._repository.retrieve(owner_id, encrypted_text)
        if access_token is None:
            return None
        if access_token.is_expired(self._clock()):
            log.warning("access.expired_row_returned", owner_id=owner_id)
            return None
        return access_token

    def _prolong_and_update(self, access_token: AccessToken, prolong_minutes: int | None) -> AccessToken | bool:
        prolonged = self.prolong(access_token, prolong_minutes)
        if not self.update(prolonged):
            log.info("access.prolong_lost", owner_id=access_token.owner_id)
            return False
        log.info(
            "access.prolonged",
            owner_id=prolonged.owner_id,
            expires_at=_iso(prolonged.expires_at),
        )
        return prolonged


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None
