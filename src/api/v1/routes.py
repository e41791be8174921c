"""
API v1 routes.

Defines REST endpoints for account registration, email confirmation,
login and password reset.

Handlers are plain ``def`` functions: FastAPI runs them in its worker
threadpool, which keeps bcrypt work off the event loop.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_basic_auth_credentials, get_registration_service
from src.api.models import (
    AccountResponse,
    ConfirmEmailRequest,
    ConfirmEmailResponse,
    ErrorResponse,
    FieldErrorModel,
    MessageResponse,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    ValidationErrorResponse,
)
from src.domain.account import AccountRecord
from src.domain.exceptions import (
    AuthenticationFailed,
    FieldValidationError,
    InvalidOrExpiredToken,
    WeakPassword,
)
from src.domain.registration import RegistrationService
from src.domain.validation import RegistrationInput

router = APIRouter(tags=["v1"])

# Identical for unknown account, unconfirmed account and wrong password
AUTHENTICATION_FAILED_DETAIL = "Invalid credentials"
INVALID_TOKEN_DETAIL = "Invalid or expired confirmation link"


def _field_errors(e: FieldValidationError) -> dict[str, list[dict[str, str]]]:
    return {
        field: [FieldErrorModel.from_error(error).model_dump() for error in field_errors]
        for field, field_errors in e.errors.items()
    }


def _authenticate(service: RegistrationService, credentials: tuple[str, str]) -> AccountRecord:
    identifier, password = credentials
    try:
        return service.login(identifier, password)
    except AuthenticationFailed:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTHENTICATION_FAILED_DETAIL,
            headers={"WWW-Authenticate": "Basic"},
        ) from None


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        422: {"model": ValidationErrorResponse, "description": "Field validation errors"},
    },
    summary="Register a new user",
    description="Submit email, password, display name and phone number to create an account. "
    "A confirmation link will be sent to the provided email.",
)
def register(
    request_data: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    """
    Register a new, unconfirmed account.

    All field errors are returned together, keyed by field name.
    """
    try:
        account = service.register(RegistrationInput(**request_data.model_dump()))
    except FieldValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_field_errors(e),
        ) from None
    return RegisterResponse(
        message="Confirmation email sent",
        account=AccountResponse.from_record(account),
        expires_in_seconds=service.policy.email_confirmation_timeout_seconds,
    )


@router.post(
    "/confirm-email",
    response_model=ConfirmEmailResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
        422: {"description": "Validation error"},
    },
    summary="Confirm email address",
    description="Redeem the token from the confirmation email.",
)
def confirm_email(
    request_data: ConfirmEmailRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> ConfirmEmailResponse:
    try:
        account = service.confirm_email(request_data.token)
    except InvalidOrExpiredToken:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_TOKEN_DETAIL,
        ) from None
    return ConfirmEmailResponse(
        message="Email confirmed",
        account=AccountResponse.from_record(account),
    )


@router.post(
    "/login",
    response_model=AccountResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
    summary="Log in",
    description="Authenticate with email or display name and password via HTTP BASIC AUTH.",
)
def login(
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    service: RegistrationService = Depends(get_registration_service),
) -> AccountResponse:
    account = _authenticate(service, credentials)
    return AccountResponse.from_record(account)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        422: {"model": ErrorResponse, "description": "Password policy violation"},
    },
    summary="Reset password",
    description="Replace the password of the authenticated account. "
    "All existing sessions of the account become invalid.",
)
def reset_password(
    request_data: PasswordResetRequest,
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    account = _authenticate(service, credentials)
    try:
        service.reset_password(account, request_data.new_password)
    except WeakPassword as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from None
    return MessageResponse(message="Password updated")
