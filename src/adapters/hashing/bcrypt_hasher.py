"""
bcrypt password hasher - Implements PasswordHasher protocol.

Security Design - Timing Oracle Prevention:
------------------------------------------
bcrypt.checkpw() dominates the response time of any credential check. When
there is no stored hash (unknown account, externally authenticated account)
we compare against a pre-computed dummy hash so bcrypt always runs and the
caller cannot tell the cases apart by timing.
"""

import logging

import bcrypt

from src.domain.account import BCRYPT_MAX_PASSWORD_BYTES

logger = logging.getLogger(__name__)


class BcryptPasswordHasher:
    """
    Implements PasswordHasher protocol via bcrypt.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, rounds: int = 10) -> None:
        """
        Initialize hasher with a fixed work factor.

        Args:
            rounds: bcrypt cost factor (salt rounds), 4-31
        """
        self._rounds = rounds
        # Same cost factor as real hashes so dummy checks take as long
        self._dummy_hash = bcrypt.hashpw(
            b"dummy_password_for_timing_safety", bcrypt.gensalt(rounds)
        )

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(plaintext.encode(), bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, plaintext: str, digest: str | None) -> bool:
        candidate = plaintext.encode()
        if len(candidate) > BCRYPT_MAX_PASSWORD_BYTES:
            # Never matches, but still costs one check so timing stays flat
            bcrypt.checkpw(candidate[:BCRYPT_MAX_PASSWORD_BYTES], self._dummy_hash)
            logger.info("Password verification rejected over-long candidate")
            return False

        if digest is None:
            bcrypt.checkpw(candidate, self._dummy_hash)
            return False

        try:
            return bcrypt.checkpw(candidate, digest.encode())
        except ValueError:
            logger.warning("Password verification rejected malformed stored hash")
            return False
