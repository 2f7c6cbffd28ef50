"""
Composition root — builds a ready-to-use AccessService from settings.

This is the ONLY place where concrete adapters are instantiated.
Everything else depends on the Protocol ports.

Responsibilities:
  1. Configure structlog for structured logging
  2. Create the HMAC code generator and the PostgreSQL repository
  3. Inject them into AccessService
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import structlog

from temporary_access.adapters.code_generator import HmacCodeGenerator
from temporary_access.adapters.repository import PsycopgTokenRepository
from temporary_access.config import AppSettings, CodeSettings
from temporary_access.domain.models import Clock, utc_now
from temporary_access.service import AccessService


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured, human-readable console logging.

    Unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_code_generator(settings: CodeSettings) -> HmacCodeGenerator:
    return HmacCodeGenerator(
        secret=settings.secret.get_secret_value(),
        length=settings.length,
        alphabet=settings.alphabet,
    )


def build_service(settings: AppSettings, clock: Clock = utc_now) -> AccessService:
    """Wire the PostgreSQL repository and HMAC generator into an AccessService."""
    configure_structlog(settings.log_level)
    repository = PsycopgTokenRepository(
        dsn=settings.database.get_dsn(),
        table=settings.database.table,
        clock=clock,
    )
    structlog.get_logger().info(
        "app.service_built",
        table=settings.database.table,
        code_length=settings.code.length,
        default_lifetime_minutes=settings.default_lifetime_minutes,
    )
    return AccessService(repository, create_code_generator(settings.code), clock=clock)


def default_expiry(settings: AppSettings, now: datetime) -> datetime | None:
    """Expiry for a code issued at `now` under the configured default lifetime."""
    if settings.default_lifetime_minutes is None:
        return None
    return now + timedelta(minutes=settings.default_lifetime_minutes)
