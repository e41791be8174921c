"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock
- A fast bcrypt hasher (minimum cost factor)
- In-memory repository and mocked email sender
- A fully wired RegistrationService
- A PostgreSQL connection pool (skipped when the database is down)
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.hashing.bcrypt_hasher import BcryptPasswordHasher
from src.adapters.repository.memory import InMemoryAccountRepository
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.account import AccountPolicy
from src.domain.registration import RegistrationService

START = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    """bcrypt at its minimum cost factor to keep tests fast."""
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def policy() -> AccountPolicy:
    return AccountPolicy()


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def email_sender() -> Mock:
    return Mock()


@pytest.fixture
def service(
    repository: InMemoryAccountRepository,
    email_sender: Mock,
    hasher: BcryptPasswordHasher,
    clock: FakeClock,
    policy: AccountPolicy,
) -> RegistrationService:
    return RegistrationService(
        repository=repository,
        email_sender=email_sender,
        hasher=hasher,
        clock=clock,
        policy=policy,
    )


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for integration and adversarial tests.

    Skips the requesting tests when PostgreSQL is not reachable.
    """
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not available at {settings.database_url}")

    run_migrations(pool)
    yield pool
    pool.close()
