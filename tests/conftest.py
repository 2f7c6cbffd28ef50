"""
Shared test fixtures and helpers for the temporary-access test suite.

Provides a frozen, manually advanced clock so expiry and prolongation can
be asserted to the second, plus ready-wired generator and service fixtures
backed by the in-memory repository.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from temporary_access.adapters.code_generator import HmacCodeGenerator
from temporary_access.adapters.memory import InMemoryTokenRepository
from temporary_access.service import AccessService

EPOCH = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)
SECRET = "test-secret"


class FrozenClock:
    """A callable clock that only moves when told to."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def generator() -> HmacCodeGenerator:
    return HmacCodeGenerator(secret=SECRET)


@pytest.fixture()
def repository(clock: FrozenClock) -> InMemoryTokenRepository:
    return InMemoryTokenRepository(clock=clock)


@pytest.fixture()
def service(
    repository: InMemoryTokenRepository,
    generator: HmacCodeGenerator,
    clock: FrozenClock,
) -> AccessService:
    return AccessService(repository, generator, clock=clock)
