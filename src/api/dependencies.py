"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Settings are turned into explicit policy objects here; the domain never
reads configuration itself.
"""

from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from src.adapters.clock import SystemClock
from src.adapters.hashing.bcrypt_hasher import BcryptPasswordHasher
from src.adapters.repository.postgres import PostgresAccountRepository
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings, get_settings
from src.domain.account import AccountPolicy
from src.domain.registration import RegistrationService
from src.domain.validation import RegistrationValidator

# Module-level singleton - SystemClock is stateless
_clock = SystemClock()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_repository(request: Request) -> PostgresAccountRepository:
    """Create repository with connection pool from app state."""
    pool = get_pool(request)
    return PostgresAccountRepository(pool)


@lru_cache
def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return ConsoleEmailSender(link_base_url=get_settings().confirmation_link_base_url)


@lru_cache
def get_password_hasher() -> BcryptPasswordHasher:
    """Get bcrypt hasher (singleton, pre-computes its dummy hash once)."""
    return BcryptPasswordHasher(rounds=get_settings().salt_rounds)


def build_policy(settings: Settings) -> AccountPolicy:
    return AccountPolicy(
        email_confirmation_timeout_seconds=settings.email_confirmation_timeout_seconds,
        min_password_length=settings.min_password_length,
    )


def build_validator(settings: Settings) -> RegistrationValidator:
    return RegistrationValidator(
        policy=build_policy(settings),
        display_name_max_length=settings.display_name_max_length,
        phone_min_digits=settings.phone_min_digits,
        phone_max_digits=settings.phone_max_digits,
    )


def get_registration_service(request: Request) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repository, hasher, clock and email sender.
    """
    settings = get_settings()
    return RegistrationService(
        repository=get_repository(request),
        email_sender=get_email_sender(),
        hasher=get_password_hasher(),
        clock=_clock,
        policy=build_policy(settings),
        validator=build_validator(settings),
    )


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_basic_auth_credentials(
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> tuple[str, str]:
    """
    Extract credentials from HTTP BASIC AUTH header.

    FastAPI's HTTPBasic automatically:
    - Returns 401 for missing Authorization header
    - Returns 401 for malformed base64 encoding
    - Parses base64(identifier:password) format

    The identifier is an email or a display name; the domain normalizes it.

    Returns:
        Tuple of (identifier, password)
    """
    return credentials.username, credentials.password
