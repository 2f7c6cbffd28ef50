"""
HMAC code generator — implements the CodeGenerator port.

Plain codes are short strings drawn with `secrets` from an alphabet that
leaves out look-alike characters. The encrypted form is the hex
HMAC-SHA256 of the normalized plain code under an application secret:
deterministic for a given secret, so a code typed back by a user can be
re-derived and compared without the plain text ever being stored.

Rotating the secret invalidates every outstanding code.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from temporary_access.domain.errors import InvalidCodeFormat
from temporary_access.domain.models import AccessCode

DEFAULT_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
DEFAULT_LENGTH = 6
MIN_LENGTH = 4


class HmacCodeGenerator:
    """
    Generate codes and derive their HMAC-SHA256 tokens.

    Typed codes are trimmed and upper-cased before validation, so users
    may enter them in any case when the alphabet is upper-case only.
    """

    def __init__(
        self,
        secret: str,
        length: int = DEFAULT_LENGTH,
        alphabet: str = DEFAULT_ALPHABET,
    ) -> None:
        if not secret:
            raise ValueError("Code secret must be provided")
        if length < MIN_LENGTH:
            raise ValueError(f"Code length must be at least {MIN_LENGTH}, got {length}")
        if len(set(alphabet)) < 2:
            raise ValueError("Code alphabet needs at least two distinct characters")
        if any(char.isspace() for char in alphabet):
            raise ValueError("Code alphabet must not contain whitespace")
        self._key = secret.encode("utf-8")
        self._length = length
        self._alphabet = alphabet
        self._charset = frozenset(alphabet)
        self._case_insensitive = alphabet == alphabet.upper()

    def generate(self) -> AccessCode:
        plain = "".join(secrets.choice(self._alphabet) for _ in range(self._length))
        return self._make(plain)

    def from_plain(self, plain_text: str) -> AccessCode:
        """Validate typed text and re-derive its encrypted form."""
        if not isinstance(plain_text, str):
            raise InvalidCodeFormat(f"Access code must be text, got {type(plain_text).__name__}")
        plain = self._normalize(plain_text)
        if len(plain) != self._length:
            raise InvalidCodeFormat(
                f"Access code must be {self._length} characters long",
                length=len(plain),
            )
        if not self._charset.issuperset(plain):
            raise InvalidCodeFormat("Access code contains unexpected characters", length=len(plain))
        return self._make(plain)

    def _normalize(self, plain_text: str) -> str:
        plain = plain_text.strip()
        return plain.upper() if self._case_insensitive else plain

    def _make(self, plain: str) -> AccessCode:
        digest = hmac.new(self._key, plain.encode("utf-8"), hashlib.sha256).hexdigest()
        return AccessCode(plain=plain, encrypted=digest)
