"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Uniqueness:
-----------
Unique constraints on display_name, pending_email and confirmed_email are
the final authority against concurrent duplicate registrations. A
UniqueViolation on one of them is translated into the domain's
UniquenessConflict; every other database error propagates unchanged.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.account import AccountRecord
from src.domain.exceptions import UniquenessConflict
from src.domain.validation import DISPLAY_NAME_FIELD, EMAIL_FIELD

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, public_id, display_name, pending_email, confirmed_email,
    email_confirmation_token, email_confirmation_requested_at,
    email_confirmation_completed_at, security_operation_performed_at,
    password_hash, phone_number, created_at, updated_at
"""

_INSERT_SQL = f"""
    INSERT INTO accounts (
        public_id, display_name, pending_email, confirmed_email,
        email_confirmation_token, email_confirmation_requested_at,
        email_confirmation_completed_at, security_operation_performed_at,
        password_hash, phone_number, created_at, updated_at
    )
    VALUES (
        %(public_id)s::uuid, %(display_name)s, %(pending_email)s, %(confirmed_email)s,
        %(email_confirmation_token)s, %(email_confirmation_requested_at)s,
        %(email_confirmation_completed_at)s, %(security_operation_performed_at)s,
        %(password_hash)s, %(phone_number)s,
        COALESCE(%(created_at)s, NOW()), COALESCE(%(updated_at)s, NOW())
    )
    RETURNING {_COLUMNS}
"""

_UPDATE_SQL = f"""
    UPDATE accounts
    SET display_name = %(display_name)s,
        pending_email = %(pending_email)s,
        confirmed_email = %(confirmed_email)s,
        email_confirmation_token = %(email_confirmation_token)s,
        email_confirmation_requested_at = %(email_confirmation_requested_at)s,
        email_confirmation_completed_at = %(email_confirmation_completed_at)s,
        security_operation_performed_at = %(security_operation_performed_at)s,
        password_hash = %(password_hash)s,
        phone_number = %(phone_number)s,
        updated_at = COALESCE(%(updated_at)s, NOW())
    WHERE id = %(id)s
    RETURNING {_COLUMNS}
"""

# Constraint name -> domain field reported on conflict
_UNIQUE_CONSTRAINT_FIELDS = {
    "accounts_display_name_key": DISPLAY_NAME_FIELD,
    "accounts_pending_email_key": EMAIL_FIELD,
    "accounts_confirmed_email_key": EMAIL_FIELD,
}


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_email(self, email: str) -> AccountRecord | None:
        """
        Find an account by confirmed or pending email.

        When one account has the address confirmed and another has it
        pending, the confirmed one is returned.
        """
        sql = f"""
            SELECT {_COLUMNS}
            FROM accounts
            WHERE confirmed_email = %(email)s OR pending_email = %(email)s
            ORDER BY confirmed_email IS NOT DISTINCT FROM %(email)s DESC
            LIMIT 1
        """
        return self._fetch_one(sql, {"email": email})

    def find_by_display_name(self, display_name: str) -> AccountRecord | None:
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE display_name = %(display_name)s"
        return self._fetch_one(sql, {"display_name": display_name})

    def find_by_confirmation_token(self, token: str) -> AccountRecord | None:
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE email_confirmation_token = %(token)s"
        return self._fetch_one(sql, {"token": token})

    def save(self, account: AccountRecord) -> AccountRecord:
        """
        Insert a new account or update an existing one.

        Raises:
            UniquenessConflict: display name or email already taken
        """
        sql = _INSERT_SQL if account.id is None else _UPDATE_SQL
        with _unique_violations_as_conflicts():
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(sql, _to_params(account))
                row = cursor.fetchone()
                conn.commit()

        if row is None:
            raise LookupError(f"Account {account.public_id} no longer exists")
        return _to_record(row)

    def claim(self, account: AccountRecord, expired_before: datetime) -> AccountRecord:
        """
        Insert a registration, replacing expired unconfirmed holders of its
        email or display name in the same transaction.

        Concurrent claims serialize on the deleted rows' locks; the loser's
        INSERT then hits a unique constraint.

        Raises:
            UniquenessConflict: A live account holds the email or display name
        """
        params = {**_to_params(account), "expired_before": expired_before}
        with _unique_violations_as_conflicts():
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(
                    """
                    DELETE FROM accounts
                    WHERE email_confirmation_completed_at IS NULL
                      AND email_confirmation_requested_at < %(expired_before)s
                      AND (pending_email = %(pending_email)s
                           OR display_name = %(display_name)s)
                    """,
                    params,
                )
                if cursor.rowcount:
                    logger.info("Replaced %d expired registration(s)", cursor.rowcount)
                cursor.execute(_INSERT_SQL, params)
                row = cursor.fetchone()
                conn.commit()
        return _to_record(row)

    def _fetch_one(self, sql: str, params: dict[str, Any]) -> AccountRecord | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return _to_record(row) if row is not None else None


@contextmanager
def _unique_violations_as_conflicts() -> Iterator[None]:
    """Translate unique constraint hits into UniquenessConflict."""
    try:
        yield
    except errors.UniqueViolation as e:
        field = _UNIQUE_CONSTRAINT_FIELDS.get(e.diag.constraint_name or "")
        if field is None:
            raise
        raise UniquenessConflict(field) from e


def _to_params(account: AccountRecord) -> dict[str, Any]:
    return {
        "id": account.id,
        "public_id": account.public_id,
        "display_name": account.display_name,
        "pending_email": account.pending_email,
        "confirmed_email": account.confirmed_email,
        "email_confirmation_token": account.email_confirmation_token,
        "email_confirmation_requested_at": account.email_confirmation_requested_at,
        "email_confirmation_completed_at": account.email_confirmation_completed_at,
        "security_operation_performed_at": account.security_operation_performed_at,
        "password_hash": account.password_hash,
        "phone_number": account.phone_number,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }


def _to_record(row: dict[str, Any]) -> AccountRecord:
    return AccountRecord(**{**row, "public_id": str(row["public_id"])})


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
