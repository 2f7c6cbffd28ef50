"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep secrets out of source control

Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated via env_nested_delimiter="__", so the env var
CODE__SECRET maps to code.secret, DATABASE__HOST maps to database.host, etc.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import quote

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from temporary_access.adapters.code_generator import (
    DEFAULT_ALPHABET,
    DEFAULT_LENGTH,
    MIN_LENGTH,
)
from temporary_access.adapters.repository import DEFAULT_TABLE

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class CodeSettings(BaseModel):
    """Shape of generated access codes and the key their tokens are derived with."""

    secret: SecretStr = Field(description="HMAC key for deriving tokens from plain codes")
    length: int = Field(default=DEFAULT_LENGTH, ge=MIN_LENGTH, description="Characters per code")
    alphabet: str = Field(default=DEFAULT_ALPHABET, description="Characters codes are drawn from")

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("CODE__SECRET must not be empty")
        return value

    @field_validator("alphabet")
    @classmethod
    def validate_alphabet(cls, value: str) -> str:
        """Reject alphabets that cannot produce an unpredictable code."""
        if len(set(value)) < 2:
            raise ValueError(f"Code alphabet needs at least two distinct characters, got {value!r}")
        if any(char.isspace() for char in value):
            raise ValueError("Code alphabet must not contain whitespace, typed codes are trimmed")
        return value


class DatabaseSettings(BaseModel):
    """
    PostgreSQL connection configuration.

    Accepts either a full connection string via DATABASE__DSN or individual
    components (DATABASE__HOST, DATABASE__PORT, DATABASE__NAME,
    DATABASE__USERNAME, DATABASE__PASSWORD). The DSN takes priority when
    both are provided.
    """

    dsn: SecretStr | None = Field(
        default=None,
        description="Full PostgreSQL connection string (overrides individual fields)",
    )

    host: str | None = Field(default=None, description="PostgreSQL host")
    port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    name: str | None = Field(default=None, description="PostgreSQL database name")
    username: str | None = Field(default=None, description="PostgreSQL username")
    password: SecretStr | None = Field(default=None, description="PostgreSQL password")

    table: str = Field(default=DEFAULT_TABLE, description="Table holding access tokens")

    @field_validator("table")
    @classmethod
    def validate_table(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"Table name must be a plain SQL identifier, got {value!r}")
        return value

    @model_validator(mode="after")
    def resolve_dsn(self) -> DatabaseSettings:
        """
        Ensure `dsn` is always populated.

        Builds the DSN from the component fields when DATABASE__DSN is unset.
        Raises ValueError at startup if neither is complete.
        """
        if self.dsn is not None:
            return self
        missing = [f for f, v in [
            ("DATABASE__HOST", self.host),
            ("DATABASE__NAME", self.name),
            ("DATABASE__USERNAME", self.username),
            ("DATABASE__PASSWORD", self.password),
        ] if not v]
        if missing:
            raise ValueError(
                "Set DATABASE__DSN or provide all of: "
                + ", ".join(missing)
            )
        dsn_value = (
            f"postgresql://{quote(self.username, safe='')}"  # type: ignore[arg-type]
            f":{quote(self.password.get_secret_value(), safe='')}"  # type: ignore[union-attr]
            f"@{self.host}:{self.port}/{self.name}"
        )
        object.__setattr__(self, "dsn", SecretStr(dsn_value))
        return self

    def get_dsn(self) -> str:
        """Return the active database DSN as a plain string."""
        assert self.dsn is not None  # guaranteed by resolve_dsn validator
        return self.dsn.get_secret_value()


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    code: CodeSettings
    database: DatabaseSettings

    default_lifetime_minutes: int | None = Field(
        default=15,
        ge=1,
        description="Lifetime applied by default_expiry(); unset means codes never expire",
    )
    log_level: str = Field(default="INFO")
