"""Password hashing with bcrypt."""

import asyncio

import bcrypt

from gatheryourdeals.errors import MalformedHashError, PasswordTooLong

# Constants
DEFAULT_BCRYPT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72  # bcrypt ignores (or rejects) anything beyond this


class PasswordHasher:
    """Salted, adaptive one-way password hashing.

    Hashing and verification are CPU-bound, so the async methods run bcrypt
    in a worker thread. Instances are safe to share between requests.
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash_sync(self, password: str) -> str:
        """Hash a password using bcrypt with a fresh salt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            PasswordTooLong: If the password exceeds bcrypt's 72-byte input
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLong()
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify_sync(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise

        Raises:
            MalformedHashError: If ``password_hash`` is not a bcrypt hash
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            # Never hashable; burn a dummy verification instead.
            self._verify_dummy_sync(password)
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError as e:
            raise MalformedHashError(str(e)) from e

    def _verify_dummy_sync(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(
                b"gatheryourdeals-dummy", bcrypt.gensalt(rounds=self.rounds)
            )
        bcrypt.checkpw(password.encode("utf-8")[:MAX_PASSWORD_BYTES], self._dummy_hash)

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self.hash_sync, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.verify_sync, password, password_hash)

    async def verify_dummy(self, password: str) -> None:
        """Spend one verification's worth of CPU against a fixed hash.

        Used when there is no stored hash to compare against, so that the
        caller's latency does not reveal that the account is missing.
        """
        await asyncio.to_thread(self._verify_dummy_sync, password)
