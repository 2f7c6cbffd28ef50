"""
temporary_access — temporary access codes bound to an owner.

Issues a short human-readable code together with its one-way encrypted
token, and verifies, prolongs and expires it. Storage and code generation
are injected through ports so any persistence engine can sit underneath.
"""

from temporary_access.domain.errors import (
    DuplicateTokenError,
    ErrorCode,
    InvalidCodeFormat,
    TemporaryAccessError,
)
from temporary_access.domain.models import (
    ALL_FIELDS,
    AccessCode,
    AccessToken,
    AttributeQuery,
    Criterion,
    Operator,
    TokenField,
)
from temporary_access.service import AccessService

__all__ = [
    "ALL_FIELDS",
    "AccessCode",
    "AccessService",
    "AccessToken",
    "AttributeQuery",
    "Criterion",
    "DuplicateTokenError",
    "ErrorCode",
    "InvalidCodeFormat",
    "Operator",
    "TemporaryAccessError",
    "TokenField",
]

__version__ = "0.1.0"
