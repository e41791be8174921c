"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .account import AccountRecord


class AccountRepository(Protocol):
    """Port interface for account persistence.

    The storage layer is the final authority on uniqueness: ``save`` must
    raise ``UniquenessConflict`` when a unique column is already taken.
    """

    def find_by_email(self, email: str) -> AccountRecord | None:
        """
        Find an account whose confirmed or pending email matches.

        Args:
            email: Normalized (lowercase) email address

        Returns:
            The matching account, or None
        """
        ...

    def find_by_display_name(self, display_name: str) -> AccountRecord | None:
        """Find an account by its exact display name."""
        ...

    def find_by_confirmation_token(self, token: str) -> AccountRecord | None:
        """Find the account holding an outstanding confirmation token."""
        ...

    def save(self, account: AccountRecord) -> AccountRecord:
        """
        Insert a new account or update an existing one.

        New accounts (``id is None``) receive their internal id here.

        Raises:
            UniquenessConflict: If email or display name is already taken
        """
        ...

    def claim(self, account: AccountRecord, expired_before: datetime) -> AccountRecord:
        """
        Insert a new registration, taking over expired claims atomically.

        Unconfirmed accounts whose confirmation was requested before
        ``expired_before`` and that hold the new account's pending email or
        display name are removed in the same transaction as the insert.

        Raises:
            UniquenessConflict: If a live account holds the email or display name
        """
        ...


class PasswordHasher(Protocol):
    """Port interface for credential hashing."""

    def hash(self, plaintext: str) -> str:
        """Derive a salted digest from a plaintext password."""
        ...

    def verify(self, plaintext: str, digest: str | None) -> bool:
        """
        Check a plaintext password against a stored digest.

        A missing digest must still cost a full verification and return False,
        so that absent credentials are indistinguishable by timing.
        """
        ...


class Clock(Protocol):
    """Port interface for the current time."""

    def now(self) -> datetime:
        """Return the current timezone-aware time."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_confirmation_email(self, email: str, token: str) -> None:
        """
        Deliver an email confirmation link.

        Args:
            email: Recipient (pending) email address
            token: Confirmation token to embed in the link
        """
        ...
