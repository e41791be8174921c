"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account lifecycle: the account record with its
confirmation and session-invalidation state machine, registration input
validation, and the registration service. It defines its own port
interfaces for infrastructure abstraction.
"""

from .account import AccountPolicy, AccountRecord, ConfirmationState
from .exceptions import (
    AccountError,
    AuthenticationFailed,
    FieldValidationError,
    InvalidOrExpiredToken,
    UniquenessConflict,
    WeakPassword,
)
from .ports import AccountRepository, Clock, EmailSender, PasswordHasher
from .registration import RegistrationService
from .validation import (
    ErrorCode,
    FieldError,
    RegistrationInput,
    RegistrationPayload,
    RegistrationValidator,
    ValidationResult,
    normalize_email,
    normalize_phone_number,
)

__all__ = [
    "AccountError",
    "AccountPolicy",
    "AccountRecord",
    "AccountRepository",
    "AuthenticationFailed",
    "Clock",
    "ConfirmationState",
    "EmailSender",
    "ErrorCode",
    "FieldError",
    "FieldValidationError",
    "InvalidOrExpiredToken",
    "PasswordHasher",
    "RegistrationInput",
    "RegistrationPayload",
    "RegistrationService",
    "RegistrationValidator",
    "UniquenessConflict",
    "ValidationResult",
    "WeakPassword",
    "normalize_email",
    "normalize_phone_number",
]
