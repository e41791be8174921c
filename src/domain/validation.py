"""
Registration input validation and normalization.

Turns raw registration input into either a normalized payload ready for
persistence or a mapping of field name to field errors, never both.
Every field is checked in one pass so all problems can be reported together.

Uniqueness of email and display name is not decided here; the registration
service consults the repository and reports conflicts with the same
FieldError shape.
"""

import re
import string
from dataclasses import dataclass, field
from enum import Enum

from email_validator import EmailNotValidError, validate_email

from .account import AccountPolicy, PasswordViolation

EMAIL_FIELD = "email"
PASSWORD_FIELD = "password"
DISPLAY_NAME_FIELD = "display_name"
PHONE_NUMBER_FIELD = "phone_number"


class ErrorCode(str, Enum):
    """Machine-readable field error codes."""

    REQUIRED = "Required"
    INVALID_EMAIL = "InvalidEmail"
    PASSWORD_TOO_SHORT = "PasswordTooShort"
    PASSWORD_TOO_LONG = "PasswordTooLong"
    INVALID_DISPLAY_NAME = "InvalidDisplayName"
    INVALID_PHONE_NUMBER = "InvalidPhoneNumber"
    EMAIL_ALREADY_REGISTERED = "EmailAlreadyRegistered"
    DISPLAY_NAME_ALREADY_TAKEN = "DisplayNameAlreadyTaken"


@dataclass(frozen=True)
class FieldError:
    """A single problem with a single field."""

    code: ErrorCode
    message: str


@dataclass(frozen=True)
class RegistrationInput:
    """Raw registration form input, as submitted."""

    email: str | None = None
    password: str | None = field(default=None, repr=False)
    display_name: str | None = None
    phone_number: str | None = None


@dataclass(frozen=True)
class RegistrationPayload:
    """Normalized registration data, every field canonical."""

    email: str
    password: str = field(repr=False)
    display_name: str
    phone_number: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation run: a payload or errors, never both."""

    payload: RegistrationPayload | None = None
    errors: dict[str, list[FieldError]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if (self.payload is None) == (not self.errors):
            raise ValueError("ValidationResult needs exactly one of payload or errors")

    @property
    def ok(self) -> bool:
        return self.payload is not None


_CONFLICT_ERRORS = {
    EMAIL_FIELD: FieldError(
        ErrorCode.EMAIL_ALREADY_REGISTERED, "This email address is already registered"
    ),
    DISPLAY_NAME_FIELD: FieldError(
        ErrorCode.DISPLAY_NAME_ALREADY_TAKEN, "This display name is already taken"
    ),
}


_PASSWORD_VIOLATION_CODES = {
    PasswordViolation.TOO_SHORT: ErrorCode.PASSWORD_TOO_SHORT,
    PasswordViolation.TOO_LONG: ErrorCode.PASSWORD_TOO_LONG,
}


def uniqueness_error(field_name: str) -> FieldError:
    """Field error reported when a unique field is already taken."""
    return _CONFLICT_ERRORS[field_name]


def has_control_characters(value: str) -> bool:
    """True if value holds NUL, newlines or any other non-printable character."""
    return any(not ch.isprintable() for ch in value)


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase, so addresses differing only by
    case map to the same account.
    """
    return email.strip().lower()


def normalize_phone_number(raw: str) -> str:
    """
    Reduce a phone number to an optional leading ``+`` followed by digits.

    Spaces, dashes, parentheses and every other non-digit character are
    dropped. A ``+`` survives only as the first character. Idempotent.
    """
    stripped = raw.lstrip()
    prefix = "+" if stripped.startswith("+") else ""
    digits = "".join(ch for ch in stripped if ch in string.digits)
    return prefix + digits


class RegistrationValidator:
    """Validates and normalizes registration input."""

    def __init__(
        self,
        policy: AccountPolicy | None = None,
        display_name_max_length: int = 50,
        phone_min_digits: int = 7,
        phone_max_digits: int = 15,
    ) -> None:
        self.policy = policy or AccountPolicy()
        self.display_name_max_length = display_name_max_length
        self.phone_min_digits = phone_min_digits
        self.phone_max_digits = phone_max_digits
        self._phone_pattern = re.compile(
            rf"^\+\d{{{phone_min_digits},{phone_max_digits}}}$", re.ASCII
        )

    def validate(self, raw: RegistrationInput) -> ValidationResult:
        """Check every field and return a payload or all field errors."""
        email, email_errors = self.check_email(raw.email)
        password, password_errors = self.check_password(raw.password)
        display_name, display_name_errors = self.check_display_name(raw.display_name)
        phone_number, phone_errors = self.check_phone_number(raw.phone_number)

        errors = {
            name: field_errors
            for name, field_errors in (
                (EMAIL_FIELD, email_errors),
                (PASSWORD_FIELD, password_errors),
                (DISPLAY_NAME_FIELD, display_name_errors),
                (PHONE_NUMBER_FIELD, phone_errors),
            )
            if field_errors
        }
        if errors:
            return ValidationResult(errors=errors)

        return ValidationResult(
            payload=RegistrationPayload(
                email=email,
                password=password,
                display_name=display_name,
                phone_number=phone_number,
            )
        )

    def check_email(self, raw: str | None) -> tuple[str | None, list[FieldError]]:
        if raw is None or not raw.strip():
            return None, [FieldError(ErrorCode.REQUIRED, "Email is required")]

        email = normalize_email(raw)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            return None, [FieldError(ErrorCode.INVALID_EMAIL, "Enter a valid email address")]
        return email, []

    def check_password(self, raw: str | None) -> tuple[str | None, list[FieldError]]:
        if not raw:
            return None, [FieldError(ErrorCode.REQUIRED, "Password is required")]

        violation = self.policy.password_violation(raw)
        if violation is not None:
            code = _PASSWORD_VIOLATION_CODES[violation]
            return None, [FieldError(code, self.policy.describe(violation))]
        return raw, []

    def check_display_name(self, raw: str | None) -> tuple[str | None, list[FieldError]]:
        display_name = (raw or "").strip()
        if not display_name:
            return None, [FieldError(ErrorCode.REQUIRED, "Display name is required")]

        if len(display_name) > self.display_name_max_length:
            message = f"Display name must be at most {self.display_name_max_length} characters"
            return None, [FieldError(ErrorCode.INVALID_DISPLAY_NAME, message)]
        if has_control_characters(display_name):
            message = "Display name cannot contain control characters"
            return None, [FieldError(ErrorCode.INVALID_DISPLAY_NAME, message)]
        return display_name, []

    def check_phone_number(self, raw: str | None) -> tuple[str | None, list[FieldError]]:
        if raw is None or not raw.strip():
            return None, [FieldError(ErrorCode.REQUIRED, "Phone number is required")]

        # Only a fully canonical number is ever returned
        phone_number = normalize_phone_number(raw)
        if not self.is_valid_phone_number(phone_number):
            message = (
                "Enter the phone number in international format, "
                f"+ followed by {self.phone_min_digits} to {self.phone_max_digits} digits"
            )
            return None, [FieldError(ErrorCode.INVALID_PHONE_NUMBER, message)]
        return phone_number, []

    def is_valid_phone_number(self, phone_number: str) -> bool:
        """True if the value is already in canonical international format."""
        return self._phone_pattern.match(phone_number) is not None
