"""
Unit tests for InMemoryAccountRepository adapter.

Tests verify lookups, id assignment, copy isolation and the unique
constraints mirrored from the PostgreSQL schema.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from src.adapters.repository.memory import InMemoryAccountRepository
from src.domain.account import AccountRecord
from src.domain.exceptions import UniquenessConflict


def make_account(clock, **overrides) -> AccountRecord:
    fields = {
        "display_name": "user",
        "pending_email": "user@example.com",
        "email_confirmation_token": "tok-abcdefghijkl",
        "email_confirmation_requested_at": clock.now(),
    }
    fields.update(overrides)
    return AccountRecord(**fields)


class TestSave:
    """Tests for save()."""

    def test_save_assigns_id(self, repository: InMemoryAccountRepository, clock) -> None:
        """New accounts get sequential internal ids."""
        first = repository.save(make_account(clock))
        second = repository.save(
            make_account(
                clock,
                display_name="other",
                pending_email="o@example.com",
                email_confirmation_token="tok-other0000000",
            )
        )
        assert first.id == 1
        assert second.id == 2

    def test_update_keeps_id(self, repository: InMemoryAccountRepository, clock) -> None:
        """Saving an existing account updates it in place."""
        account = repository.save(make_account(clock))
        account.phone_number = "+15551231234"

        updated = repository.save(account)

        assert updated.id == account.id
        assert len(repository) == 1
        assert repository.find_by_display_name("user").phone_number == "+15551231234"

    def test_returned_records_are_copies(
        self, repository: InMemoryAccountRepository, clock
    ) -> None:
        """Mutating a returned record does not change stored state until saved."""
        account = repository.save(make_account(clock))
        account.display_name = "changed"
        assert repository.find_by_display_name("user") is not None

    def test_duplicate_display_name(self, repository: InMemoryAccountRepository, clock) -> None:
        """Display name collisions raise UniquenessConflict on display_name."""
        repository.save(make_account(clock))
        with pytest.raises(UniquenessConflict) as exc_info:
            repository.save(
                make_account(clock, pending_email="o@example.com", email_confirmation_token=None)
            )
        assert exc_info.value.field == "display_name"

    def test_duplicate_pending_email(self, repository: InMemoryAccountRepository, clock) -> None:
        """Pending email collisions raise UniquenessConflict on email."""
        repository.save(make_account(clock))
        with pytest.raises(UniquenessConflict) as exc_info:
            repository.save(make_account(clock, display_name="other"))
        assert exc_info.value.field == "email"

    def test_concurrent_duplicates_one_wins(
        self, repository: InMemoryAccountRepository, clock
    ) -> None:
        """Concurrent saves of the same email store exactly one account."""

        def attempt(i: int) -> bool:
            try:
                repository.save(make_account(clock, display_name=f"user{i}"))
            except UniquenessConflict:
                return False
            return True

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(attempt, range(10)))

        assert results.count(True) == 1
        assert len(repository) == 1


class TestFind:
    """Tests for the find_by_* lookups."""

    def test_find_by_pending_email(self, repository: InMemoryAccountRepository, clock) -> None:
        repository.save(make_account(clock))
        assert repository.find_by_email("user@example.com").display_name == "user"

    def test_confirmed_email_preferred(
        self, repository: InMemoryAccountRepository, clock
    ) -> None:
        """An address confirmed by one account wins over another's pending one."""
        repository.save(
            make_account(
                clock,
                display_name="changer",
                pending_email="shared@example.com",
                email_confirmation_token=None,
            )
        )
        repository.save(
            make_account(
                clock,
                display_name="owner",
                pending_email="owner@example.com",
                confirmed_email="shared@example.com",
                email_confirmation_completed_at=clock.now(),
                email_confirmation_token="tok-owner0000000",
            )
        )
        assert repository.find_by_email("shared@example.com").display_name == "owner"

    def test_find_by_token(self, repository: InMemoryAccountRepository, clock) -> None:
        repository.save(make_account(clock))
        assert repository.find_by_confirmation_token("tok-abcdefghijkl") is not None
        assert repository.find_by_confirmation_token("tok-missing00000") is None

    def test_missing_returns_none(self, repository: InMemoryAccountRepository) -> None:
        assert repository.find_by_email("nobody@example.com") is None
        assert repository.find_by_display_name("nobody") is None


class TestClaim:
    """Tests for claim()."""

    def test_claim_inserts(self, repository: InMemoryAccountRepository, clock) -> None:
        claimed = repository.claim(make_account(clock), clock.now() - timedelta(days=3))
        assert claimed.id is not None
        assert len(repository) == 1

    def test_claim_replaces_expired_holders(
        self, repository: InMemoryAccountRepository, clock
    ) -> None:
        """Expired unconfirmed holders of the email or display name are removed."""
        repository.save(make_account(clock))
        repository.save(
            make_account(
                clock,
                display_name="other",
                pending_email="new@example.com",
                email_confirmation_token="tok-other0000000",
            )
        )
        clock.advance(days=4)

        claimed = repository.claim(
            make_account(
                clock,
                pending_email="new@example.com",
                email_confirmation_token="tok-newnewnewnew",
            ),
            clock.now() - timedelta(days=3),
        )

        assert len(repository) == 1
        assert repository.find_by_display_name("user").id == claimed.id
        assert repository.find_by_display_name("other") is None

    def test_claim_keeps_live_holder(self, repository: InMemoryAccountRepository, clock) -> None:
        """A holder inside the window still wins."""
        repository.save(make_account(clock))

        with pytest.raises(UniquenessConflict):
            repository.claim(
                make_account(clock, email_confirmation_token="tok-second000000"),
                clock.now() - timedelta(days=3),
            )
        assert len(repository) == 1

    def test_claim_keeps_confirmed_holder(
        self, repository: InMemoryAccountRepository, clock
    ) -> None:
        """A confirmed account is never replaced, however old."""
        repository.save(
            make_account(
                clock,
                confirmed_email="user@example.com",
                email_confirmation_completed_at=clock.now(),
                email_confirmation_token=None,
            )
        )
        clock.advance(days=30)

        with pytest.raises(UniquenessConflict) as exc_info:
            repository.claim(
                make_account(clock, display_name="newcomer"), clock.now() - timedelta(days=3)
            )
        assert exc_info.value.field == "email"
