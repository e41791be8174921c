"""
Adversarial tests for timing oracle attack prevention.

Verifies that every login failure mode takes statistically similar time,
so an attacker cannot learn whether an account exists, is confirmed, or
has a different password by measuring response times.

bcrypt runs on every code path, including unknown identifiers, so its cost
dominates and masks the lookup differences.
"""

import statistics
import time
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.clock import SystemClock
from src.adapters.hashing.bcrypt_hasher import BcryptPasswordHasher
from src.adapters.repository.postgres import PostgresAccountRepository
from src.domain.exceptions import AuthenticationFailed
from src.domain.registration import RegistrationService
from src.domain.validation import RegistrationInput

pytestmark = pytest.mark.adversarial

ITERATIONS = 15

# Maximum allowed difference between medians
MAX_VARIANCE_RATIO = 0.25


@pytest.fixture
def timed_service(
    pool: ConnectionPool, production_hasher: BcryptPasswordHasher
) -> RegistrationService:
    """Service using bcrypt at the production cost factor."""
    return RegistrationService(
        repository=PostgresAccountRepository(pool),
        email_sender=Mock(),
        hasher=production_hasher,
        clock=SystemClock(),
    )


def register(service: RegistrationService, name: str, confirm: bool) -> str:
    email = f"{name}@example.com"
    service.register(
        RegistrationInput(
            email=email,
            password="secret123",
            display_name=name,
            phone_number="+15551231234",
        )
    )
    if confirm:
        token = service.email_sender.send_confirmation_email.call_args[0][1]
        service.confirm_email(token)
    return email


def measure_login(service: RegistrationService, identifier: str, password: str) -> float:
    """Time a single failing login attempt."""
    start = time.perf_counter()
    with pytest.raises(AuthenticationFailed):
        service.login(identifier, password)
    return time.perf_counter() - start


def assert_timing_similar(
    times1: list[float], times2: list[float], label1: str, label2: str
) -> None:
    """Assert two timing distributions have similar medians."""
    median1 = statistics.median(times1)
    median2 = statistics.median(times2)
    ratio = abs(median1 - median2) / max(median1, median2)

    assert ratio < MAX_VARIANCE_RATIO, (
        f"Timing difference too large between {label1} and {label2}: "
        f"{ratio:.1%} (threshold: {MAX_VARIANCE_RATIO:.0%})\n"
        f"  {label1}: median={median1:.4f}s\n"
        f"  {label2}: median={median2:.4f}s"
    )


class TestLoginTiming:
    """Login failures are indistinguishable by timing."""

    def test_unknown_email_similar_to_wrong_password(
        self, timed_service: RegistrationService
    ) -> None:
        """Unknown email takes as long as a known email with a wrong password."""
        email = register(timed_service, "known", confirm=True)

        unknown = [
            measure_login(timed_service, f"ghost{i}@example.com", "secret123")
            for i in range(ITERATIONS)
        ]
        wrong_password = [
            measure_login(timed_service, email, "wrong-password") for _ in range(ITERATIONS)
        ]

        assert_timing_similar(unknown, wrong_password, "unknown_email", "wrong_password")

    def test_unknown_display_name_similar_to_wrong_password(
        self, timed_service: RegistrationService
    ) -> None:
        """Unknown display name takes as long as a known one with a wrong password."""
        register(timed_service, "known", confirm=True)

        unknown = [
            measure_login(timed_service, f"ghost{i}", "secret123") for i in range(ITERATIONS)
        ]
        wrong_password = [
            measure_login(timed_service, "known", "wrong-password") for _ in range(ITERATIONS)
        ]

        assert_timing_similar(unknown, wrong_password, "unknown_name", "wrong_password")

    def test_unconfirmed_similar_to_wrong_password(
        self, timed_service: RegistrationService
    ) -> None:
        """An unconfirmed account with the right password looks like a wrong password."""
        pending = register(timed_service, "pending", confirm=False)
        confirmed = register(timed_service, "confirmed", confirm=True)

        unconfirmed = [
            measure_login(timed_service, pending, "secret123") for _ in range(ITERATIONS)
        ]
        wrong_password = [
            measure_login(timed_service, confirmed, "wrong-password") for _ in range(ITERATIONS)
        ]

        assert_timing_similar(unconfirmed, wrong_password, "unconfirmed", "wrong_password")
