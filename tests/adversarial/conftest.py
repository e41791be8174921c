"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition, brute force
and timing tests against a real PostgreSQL database.
"""

from collections.abc import Generator
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.clock import SystemClock
from src.adapters.hashing.bcrypt_hasher import BcryptPasswordHasher
from src.adapters.repository.postgres import PostgresAccountRepository
from src.domain.registration import RegistrationService


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean accounts table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield


@pytest.fixture(scope="module")
def production_hasher() -> BcryptPasswordHasher:
    """bcrypt at the production cost factor, for timing measurements."""
    return BcryptPasswordHasher(rounds=10)


@pytest.fixture
def postgres_service(
    pool: ConnectionPool, hasher: BcryptPasswordHasher, email_sender: Mock
) -> RegistrationService:
    """Registration service wired to PostgreSQL and the real clock."""
    return RegistrationService(
        repository=PostgresAccountRepository(pool),
        email_sender=email_sender,
        hasher=hasher,
        clock=SystemClock(),
    )
