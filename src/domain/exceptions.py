"""
Domain exceptions - Semantic error types for the account lifecycle.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Storage and connectivity failures are never wrapped in these types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import FieldError


class AccountError(Exception):
    """Base class for account domain errors."""

    pass


class FieldValidationError(AccountError):
    """One or more input fields were rejected.

    Carries every field error found in a single pass, keyed by field name.
    """

    def __init__(self, errors: dict[str, list[FieldError]]) -> None:
        self.errors = errors
        super().__init__(", ".join(sorted(errors)))

    def codes(self, field: str) -> list[str]:
        """Error codes reported for a field, in the order they were found."""
        return [error.code.value for error in self.errors.get(field, [])]


class UniquenessConflict(AccountError):
    """A unique column (email or display name) is already taken."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(field)


class InvalidOrExpiredToken(AccountError):
    """Confirmation token mismatch or confirmation window exceeded."""

    pass


class AuthenticationFailed(AccountError):
    """Unknown account, unconfirmed account, or wrong password."""

    pass


class WeakPassword(AccountError):
    """New password does not meet the password policy."""

    pass
