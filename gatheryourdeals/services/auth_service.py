"""Authentication service: admin bootstrap, registration, login, password reset."""

from datetime import datetime, timezone
from uuid import uuid4

import structlog

from gatheryourdeals.errors import (
    AdminAlreadyExists,
    InvalidCredential,
    UsernameTaken,
    UserNotFound,
)
from gatheryourdeals.models.user import Role, User
from gatheryourdeals.repositories import UserRepository
from gatheryourdeals.services.password_service import PasswordHasher

logger = structlog.get_logger(__name__)


class AuthService:
    """Business rules for user accounts.

    Username uniqueness under concurrent registration is enforced by the
    user repository, not here.
    """

    def __init__(self, users: UserRepository, hasher: PasswordHasher):
        self.users = users
        self.hasher = hasher

    async def bootstrap_admin(self, username: str, password: str) -> User:
        """Create the initial admin account.

        Of several concurrent calls at most one succeeds: the repository
        re-checks for an admin and inserts in one atomic step.

        Args:
            username: Admin username
            password: Plain-text password (will be hashed)

        Returns:
            Created admin User

        Raises:
            AdminAlreadyExists: If any admin-role user already exists
        """
        if await self.users.has_admin():
            raise AdminAlreadyExists()

        user = await self._new_user(username, password, Role.ADMIN)
        await self.users.create_admin(user)
        logger.info("admin_bootstrapped", user_id=str(user.id), username=user.username)
        return user

    async def register(self, username: str, password: str) -> User:
        """Create a regular user account. Open registration, immediately active.

        Raises:
            UsernameTaken: If the username already exists
        """
        if await self.users.get_by_username(username) is not None:
            raise UsernameTaken()

        user = await self._new_user(username, password, Role.USER)
        await self.users.create_user(user)
        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user

    async def login(self, username: str, password: str) -> User:
        """Verify credentials and return the matching user.

        Unknown usernames and wrong passwords both raise InvalidCredential,
        and both paths run one bcrypt verification.

        Raises:
            InvalidCredential: If the username is unknown or the password is wrong
        """
        user = await self.users.get_by_username(username)

        if user is None:
            await self.hasher.verify_dummy(password)
            logger.info("login_failed")
            raise InvalidCredential()

        if not await self.hasher.verify(password, user.password_hash):
            logger.info("login_failed")
            raise InvalidCredential()

        logger.info("user_logged_in", user_id=str(user.id))
        return user

    async def reset_password(self, username: str, new_password: str) -> None:
        """Replace a user's password. Used by the admin CLI.

        Raises:
            UserNotFound: If no user has this username
        """
        user = await self.users.get_by_username(username)
        if user is None:
            raise UserNotFound()

        password_hash = await self.hasher.hash(new_password)
        await self.users.update_password_hash(user.id, password_hash)
        logger.info("password_reset", user_id=str(user.id))

    async def has_admin(self) -> bool:
        """Check whether an admin account exists."""
        return await self.users.has_admin()

    async def _new_user(self, username: str, password: str, role: Role) -> User:
        password_hash = await self.hasher.hash(password)
        now = datetime.now(timezone.utc)
        user = User(
            id=uuid4(),
            username=username,
            password_hash=password_hash,
            role=role,
            created_at=now,
            updated_at=now,
        )
        return user
