"""
Password hashing utilities using bcrypt.
"""

import secrets
from functools import cached_property

import bcrypt

from src.kernel.identity.errors import HashingError

# Work factor for new hashes
BCRYPT_ROUNDS = 14

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """
    Password hashing service.

    Produces salted, one-way bcrypt digests with a fixed work factor and
    checks plaintexts against them.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string

        Raises:
            HashingError: If the password is longer than bcrypt accepts
        """
        pwd_bytes = self._encode(password)
        if len(pwd_bytes) > BCRYPT_MAX_PASSWORD_BYTES:
            raise HashingError(
                f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"
            )
        try:
            hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=self.rounds))
        except ValueError as e:
            raise HashingError() from e
        return hashed.decode("utf-8")

    def verify(self, hashed_password: str, plain_password: str) -> bool:
        """
        Verify a password against its hash.

        Args:
            hashed_password: Stored hashed password
            plain_password: Plain text password to verify

        Returns:
            True if password matches, False otherwise

        Raises:
            HashingError: If the stored hash is malformed
        """
        pwd_bytes = self._encode(plain_password)
        # Nothing over the limit was ever hashed, so it cannot match
        if len(pwd_bytes) > BCRYPT_MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(pwd_bytes, hashed_password.encode("utf-8"))
        except ValueError as e:
            raise HashingError("stored password hash is malformed") from e

    @cached_property
    def _throwaway_hash(self) -> str:
        return self.hash(secrets.token_hex(16))

    def burn(self, plain_password: str) -> bool:
        """
        Spend the same work as verify() when there is no stored hash.

        Always returns False.
        """
        self.verify(self._throwaway_hash, plain_password)
        return False
