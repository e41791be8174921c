"""
In-memory repository adapter - Implements AccountRepository protocol.

Keeps accounts in a dict guarded by a lock and enforces the same unique
constraints as the PostgreSQL schema. Records are copied on the way in and
out so callers only change stored state through save(), as with a database.
"""

import copy
import itertools
import threading
from datetime import datetime

from src.domain.account import AccountRecord
from src.domain.exceptions import UniquenessConflict
from src.domain.validation import DISPLAY_NAME_FIELD, EMAIL_FIELD


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with process-local storage.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._accounts: dict[int, AccountRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._accounts)

    def find_by_email(self, email: str) -> AccountRecord | None:
        with self._lock:
            # Confirmed addresses win over pending ones
            for account in self._accounts.values():
                if account.confirmed_email == email:
                    return copy.copy(account)
            for account in self._accounts.values():
                if account.pending_email == email:
                    return copy.copy(account)
        return None

    def find_by_display_name(self, display_name: str) -> AccountRecord | None:
        return self._find_one(lambda account: account.display_name == display_name)

    def find_by_confirmation_token(self, token: str) -> AccountRecord | None:
        return self._find_one(lambda account: account.email_confirmation_token == token)

    def save(self, account: AccountRecord) -> AccountRecord:
        with self._lock:
            others = [a for a_id, a in self._accounts.items() if a_id != account.id]
            self._check_unique(account, others)

            stored = copy.copy(account)
            if stored.id is None:
                stored.id = next(self._ids)
            self._accounts[stored.id] = stored
            return copy.copy(stored)

    def claim(self, account: AccountRecord, expired_before: datetime) -> AccountRecord:
        with self._lock:
            expired_ids = [
                a_id
                for a_id, other in self._accounts.items()
                if other.email_confirmation_completed_at is None
                and other.email_confirmation_requested_at < expired_before
                and (
                    other.pending_email == account.pending_email
                    or other.display_name == account.display_name
                )
            ]
            others = [a for a_id, a in self._accounts.items() if a_id not in expired_ids]
            self._check_unique(account, others)

            for a_id in expired_ids:
                del self._accounts[a_id]
            stored = copy.copy(account)
            stored.id = next(self._ids)
            self._accounts[stored.id] = stored
            return copy.copy(stored)

    def _find_one(self, predicate) -> AccountRecord | None:
        with self._lock:
            for account in self._accounts.values():
                if predicate(account):
                    return copy.copy(account)
        return None

    @staticmethod
    def _check_unique(account: AccountRecord, others: list[AccountRecord]) -> None:
        for other in others:
            if other.display_name == account.display_name:
                raise UniquenessConflict(DISPLAY_NAME_FIELD)
            if other.pending_email == account.pending_email or (
                account.confirmed_email is not None
                and other.confirmed_email == account.confirmed_email
            ):
                raise UniquenessConflict(EMAIL_FIELD)
