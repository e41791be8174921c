"""
Registration domain service - account lifecycle orchestration.

This module wires validation, credential hashing, the confirmation state
machine and persistence together for the externally visible operations:

- register: validate input, create an UNCONFIRMED account, send the link
- confirm_email: redeem a confirmation token
- login: authenticate by email or display name
- reset_password: replace credentials and invalidate sessions
- change_email: re-enter UNCONFIRMED for a new address

Uniqueness is pre-checked against the repository for early, field-scoped
feedback. The repository's unique constraints remain the final authority;
a conflict reported by claim() or save() is surfaced the same way as a
pre-check hit. An unconfirmed account past its confirmation window no
longer holds its email or display name: a new registration replaces it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from .account import AccountPolicy, AccountRecord, generate_confirmation_token
from .exceptions import (
    AuthenticationFailed,
    FieldValidationError,
    InvalidOrExpiredToken,
    UniquenessConflict,
)
from .ports import AccountRepository, Clock, EmailSender, PasswordHasher
from .validation import (
    DISPLAY_NAME_FIELD,
    EMAIL_FIELD,
    FieldError,
    RegistrationInput,
    RegistrationValidator,
    normalize_email,
    uniqueness_error,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistrationService:
    """
    Domain service for the account lifecycle.

    All collaborators are injected; the service holds no state of its own.
    """

    repository: AccountRepository
    email_sender: EmailSender
    hasher: PasswordHasher
    clock: Clock
    policy: AccountPolicy = field(default_factory=AccountPolicy)
    validator: RegistrationValidator | None = None

    def __post_init__(self) -> None:
        if self.validator is None:
            self.validator = RegistrationValidator(policy=self.policy)

    def register(self, raw: RegistrationInput) -> AccountRecord:
        """
        Register a new, unconfirmed account and send its confirmation link.

        Args:
            raw: Raw form input (normalized here)

        Returns:
            The persisted account

        Raises:
            FieldValidationError: With every field error found, including
                EmailAlreadyRegistered / DisplayNameAlreadyTaken
        """
        now = self.clock.now()
        result = self.validator.validate(raw)
        errors = _merge(result.errors, self._find_conflicts(raw, now))
        if errors:
            logger.info("Registration rejected: fields=%s", sorted(errors))
            raise FieldValidationError(errors)

        payload = result.payload
        token = generate_confirmation_token()
        account = AccountRecord(
            display_name=payload.display_name,
            pending_email=payload.email,
            email_confirmation_token=token,
            email_confirmation_requested_at=now,
            password_hash=self.hasher.hash(payload.password),
            phone_number=payload.phone_number,
            created_at=now,
            updated_at=now,
        )

        account = self._claim_or_reject(account, now - self.policy.confirmation_timeout)
        self.email_sender.send_confirmation_email(account.pending_email, token)
        logger.info("Registered account %s", account.public_id)
        return account

    def confirm_email(self, token: str) -> AccountRecord:
        """
        Confirm the pending email of the account holding ``token``.

        Raises:
            InvalidOrExpiredToken: Unknown token, mismatch or expired window
        """
        account = None
        if token and "\x00" not in token:
            account = self.repository.find_by_confirmation_token(token)
        if account is None:
            logger.warning("Email confirmation failed: unknown token")
            raise InvalidOrExpiredToken()

        try:
            account.confirm_email(token, self.clock.now(), self.policy)
        except InvalidOrExpiredToken:
            logger.warning("Email confirmation failed for account %s", account.public_id)
            raise

        try:
            account = self.repository.save(account)
        except UniquenessConflict as e:
            # Address confirmed by another account in the meantime
            logger.warning("Email confirmation conflict for account %s", account.public_id)
            raise InvalidOrExpiredToken() from e

        logger.info("Email confirmed for account %s", account.public_id)
        return account

    def login(self, identifier: str, password: str) -> AccountRecord:
        """
        Authenticate by email (anything containing ``@``) or display name.

        Unknown account, unconfirmed account and wrong password all raise the
        same error. The password hash is always checked so the three cases
        take the same time.

        Raises:
            AuthenticationFailed: On any authentication failure
        """
        identifier = identifier.strip()
        if not identifier or "\x00" in identifier:
            # Never a stored value; fail without asking the repository
            account = None
        elif "@" in identifier:
            account = self.repository.find_by_email(normalize_email(identifier))
        else:
            account = self.repository.find_by_display_name(identifier)

        if account is None:
            self.hasher.verify(password, None)
            logger.info("Login failed: unknown account")
            raise AuthenticationFailed()

        password_valid = account.is_right_password(password, self.hasher)
        if not password_valid or not account.can_log_in():
            logger.info("Login failed for account %s", account.public_id)
            raise AuthenticationFailed()

        return account

    def reset_password(self, account: AccountRecord, new_password: str) -> AccountRecord:
        """
        Replace the account's password and log it out everywhere.

        Raises:
            WeakPassword: If new_password violates the policy
        """
        account.reset_password(new_password, self.hasher, self.clock.now(), self.policy)
        account = self.repository.save(account)
        logger.info("Password reset for account %s", account.public_id)
        return account

    def change_email(self, account: AccountRecord, new_email: str) -> AccountRecord:
        """
        Move the account back to UNCONFIRMED for a new email address.

        Raises:
            FieldValidationError: Invalid address or EmailAlreadyRegistered
        """
        email, errors = self.validator.check_email(new_email)
        if errors:
            raise FieldValidationError({EMAIL_FIELD: errors})

        existing = self.repository.find_by_email(email)
        if existing is not None and existing.public_id != account.public_id:
            raise FieldValidationError({EMAIL_FIELD: [uniqueness_error(EMAIL_FIELD)]})

        token = generate_confirmation_token()
        account.request_email_confirmation(email, token, self.clock.now())
        account = self._save_or_reject(account)
        self.email_sender.send_confirmation_email(account.pending_email, token)
        logger.info("Email change requested for account %s", account.public_id)
        return account

    def _find_conflicts(
        self, raw: RegistrationInput, now: datetime
    ) -> dict[str, list[FieldError]]:
        """
        Best-effort uniqueness pre-check for fields that are otherwise valid.

        Expired unconfirmed accounts do not count: registration takes them over.
        """
        conflicts: dict[str, list[FieldError]] = {}

        email, _ = self.validator.check_email(raw.email)
        if email is not None and self._is_held(self.repository.find_by_email(email), now):
            conflicts[EMAIL_FIELD] = [uniqueness_error(EMAIL_FIELD)]

        display_name, _ = self.validator.check_display_name(raw.display_name)
        if display_name is not None and self._is_held(
            self.repository.find_by_display_name(display_name), now
        ):
            conflicts[DISPLAY_NAME_FIELD] = [uniqueness_error(DISPLAY_NAME_FIELD)]

        return conflicts

    def _is_held(self, account: AccountRecord | None, now: datetime) -> bool:
        return account is not None and not account.is_confirmation_expired(now, self.policy)

    def _claim_or_reject(self, account: AccountRecord, expired_before: datetime) -> AccountRecord:
        try:
            return self.repository.claim(account, expired_before)
        except UniquenessConflict as e:
            logger.info("Registration rejected by unique constraint on %s", e.field)
            raise FieldValidationError({e.field: [uniqueness_error(e.field)]}) from e

    def _save_or_reject(self, account: AccountRecord) -> AccountRecord:
        try:
            return self.repository.save(account)
        except UniquenessConflict as e:
            logger.info("Save rejected by unique constraint on %s", e.field)
            raise FieldValidationError({e.field: [uniqueness_error(e.field)]}) from e


def _merge(*error_maps: dict[str, list[FieldError]]) -> dict[str, list[FieldError]]:
    merged: dict[str, list[FieldError]] = {}
    for error_map in error_maps:
        for name, field_errors in error_map.items():
            merged.setdefault(name, []).extend(field_errors)
    return merged
