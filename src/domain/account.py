"""
Account record - credential storage and the email confirmation state machine.

Confirmation State Machine
==========================

States:
- UNCONFIRMED: pending email set, confirmation token outstanding
- CONFIRMED: confirmation token redeemed within the confirmation window

Valid Transitions:
    UNCONFIRMED -> CONFIRMED    (token matches, window not exceeded)
    CONFIRMED -> UNCONFIRMED    (email change issues a new token)

A failed confirmation (token mismatch or expiry) never mutates the record.
Expiry is evaluated lazily when confirmation is attempted, there is no timer.

Session invalidation: a session issued before security_operation_performed_at
is no longer valid. Password resets and forced bans touch that timestamp.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .exceptions import InvalidOrExpiredToken, WeakPassword
from .ports import PasswordHasher

# Longest password bcrypt accepts, in UTF-8 bytes
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordViolation(str, Enum):
    """Ways a password can break the policy."""

    TOO_SHORT = "TOO_SHORT"
    TOO_LONG = "TOO_LONG"


class ConfirmationState(str, Enum):
    """Email confirmation state of an account."""

    UNCONFIRMED = "UNCONFIRMED"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class AccountPolicy:
    """Tunable account rules, built from settings by the caller."""

    email_confirmation_timeout_seconds: int = 3 * 24 * 3600
    min_password_length: int = 6
    max_password_bytes: int = BCRYPT_MAX_PASSWORD_BYTES

    @property
    def confirmation_timeout(self) -> timedelta:
        return timedelta(seconds=self.email_confirmation_timeout_seconds)

    def password_violation(self, password: str) -> PasswordViolation | None:
        if len(password) < self.min_password_length:
            return PasswordViolation.TOO_SHORT
        if len(password.encode()) > self.max_password_bytes:
            return PasswordViolation.TOO_LONG
        return None

    def describe(self, violation: PasswordViolation) -> str:
        if violation is PasswordViolation.TOO_SHORT:
            return f"Password must be at least {self.min_password_length} characters"
        return f"Password must be at most {self.max_password_bytes} bytes"

    def check_password(self, password: str) -> str | None:
        """Return a human-readable policy violation, or None if acceptable."""
        violation = self.password_violation(password)
        return self.describe(violation) if violation is not None else None


def generate_confirmation_token() -> str:
    """
    Generate a cryptographically secure confirmation token.

    12 random bytes encode to exactly 16 URL-safe characters.
    """
    return secrets.token_urlsafe(12)


def generate_public_id() -> str:
    """Random public identifier, unrelated to the internal sequence."""
    return str(uuid.uuid4())


@dataclass
class AccountRecord:
    """
    Authoritative representation of a user's identity and credential state.

    ``id`` is assigned by the repository and never leaves the backend;
    ``public_id`` is what external callers see.
    """

    display_name: str
    pending_email: str
    email_confirmation_requested_at: datetime
    email_confirmation_token: str | None = field(default=None, repr=False)
    confirmed_email: str | None = None
    email_confirmation_completed_at: datetime | None = None
    security_operation_performed_at: datetime | None = None
    password_hash: str | None = field(default=None, repr=False)
    phone_number: str | None = None
    public_id: str = field(default_factory=generate_public_id)
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def confirmation_state(self) -> ConfirmationState:
        if self.email_confirmation_completed_at is None:
            return ConfirmationState.UNCONFIRMED
        return ConfirmationState.CONFIRMED

    def can_log_in(self) -> bool:
        """The email registration is complete."""
        return self.email_confirmation_completed_at is not None

    def is_confirmation_expired(self, now: datetime, policy: AccountPolicy) -> bool:
        """
        Unconfirmed and past the confirmation window.

        Such an account can never log in or be confirmed, so a new
        registration may take over its email and display name.
        """
        if self.email_confirmation_completed_at is not None:
            return False
        return now - self.email_confirmation_requested_at > policy.confirmation_timeout

    def is_right_password(self, candidate: str, hasher: PasswordHasher) -> bool:
        """
        Verify a candidate password against the stored hash.

        Accounts without a password (externally authenticated) never match,
        but the hasher still runs so the response time is the same.
        """
        return hasher.verify(candidate, self.password_hash)

    def reset_password(
        self,
        new_password: str,
        hasher: PasswordHasher,
        now: datetime,
        policy: AccountPolicy,
    ) -> None:
        """
        Replace the password hash and invalidate all existing sessions.

        Raises:
            WeakPassword: If new_password violates the policy; nothing changes
        """
        violation = policy.check_password(new_password)
        if violation is not None:
            raise WeakPassword(violation)

        self.password_hash = hasher.hash(new_password)
        # Force log out everywhere
        self.invalidate_sessions(now)

    def invalidate_sessions(self, now: datetime) -> None:
        """Record a security-sensitive event (password reset, forced ban)."""
        self.security_operation_performed_at = now
        self.updated_at = now

    def is_session_valid(self, issued_at: datetime) -> bool:
        """A session stays valid unless a security operation happened after it was issued."""
        if self.security_operation_performed_at is None:
            return True
        return issued_at >= self.security_operation_performed_at

    def request_email_confirmation(self, email: str, token: str, now: datetime) -> None:
        """
        Enter UNCONFIRMED for ``email`` with a fresh token.

        Used at registration and on email change. The confirmed address is
        cleared so that confirmed_email stays set only while completed_at is.
        """
        self.pending_email = email
        self.email_confirmation_token = token
        self.email_confirmation_requested_at = now
        self.email_confirmation_completed_at = None
        self.confirmed_email = None
        self.updated_at = now

    def confirm_email(self, token: str, now: datetime, policy: AccountPolicy) -> None:
        """
        Redeem the confirmation token.

        Mismatch and expiry are reported identically so the result cannot be
        used as an oracle while guessing tokens.

        Raises:
            InvalidOrExpiredToken: Token mismatch, no outstanding token, or expired
        """
        stored = self.email_confirmation_token or ""
        # Compare even when no token is outstanding to keep the timing flat
        token_valid = secrets.compare_digest(stored.encode(), token.encode()) and bool(stored)
        within_window = now - self.email_confirmation_requested_at <= policy.confirmation_timeout

        if not (token_valid and within_window):
            raise InvalidOrExpiredToken()

        self.confirmed_email = self.pending_email
        self.email_confirmation_token = None
        self.email_confirmation_completed_at = now
        self.updated_at = now
