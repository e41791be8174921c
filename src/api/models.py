"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Registration fields are plain optional strings: the domain validator checks
them so that every field error is reported in one response.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.domain.account import AccountRecord
from src.domain.validation import FieldError


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    email: str | None = Field(None, description="Email address, stored lowercased")
    password: str | None = Field(None, description="User password (min 6 characters)")
    display_name: str | None = Field(None, description="Unique nickname, 1-50 characters")
    phone_number: str | None = Field(
        None, description="Phone number in international format, e.g. +1 (555) 123-1234"
    )

    @field_validator("email", "password", "display_name", "phone_number", mode="before")
    @classmethod
    def coerce_to_str(cls, value: Any) -> str | None:
        # Wrong JSON types reach the domain validator as text and get a field error
        if value is None or isinstance(value, str):
            return value
        return str(value)


class AccountResponse(BaseModel):
    """Public view of an account. Internal id and credentials are never exposed."""

    public_id: str
    display_name: str
    email: str
    email_confirmed: bool
    phone_number: str | None = None

    @classmethod
    def from_record(cls, account: AccountRecord) -> "AccountResponse":
        return cls(
            public_id=account.public_id,
            display_name=account.display_name,
            email=account.confirmed_email or account.pending_email,
            email_confirmed=account.can_log_in(),
            phone_number=account.phone_number,
        )


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    account: AccountResponse
    expires_in_seconds: int


class ConfirmEmailRequest(BaseModel):
    """Request model for email confirmation."""

    token: str = Field(..., min_length=1, max_length=64, description="Token from the email link")


class ConfirmEmailResponse(BaseModel):
    """Response model for successful email confirmation."""

    message: str
    account: AccountResponse


class PasswordResetRequest(BaseModel):
    """Request model for password reset."""

    new_password: str


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class FieldErrorModel(BaseModel):
    """A single field error."""

    code: str
    message: str

    @classmethod
    def from_error(cls, error: FieldError) -> "FieldErrorModel":
        return cls(code=error.code.value, message=error.message)


class ValidationErrorResponse(BaseModel):
    """Field-scoped validation errors, keyed by field name."""

    detail: dict[str, list[FieldErrorModel]]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
