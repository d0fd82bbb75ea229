"""Request-time authorization: bearer token -> identity -> role check."""

from typing import Optional

import structlog

from gatheryourdeals.errors import (
    IdentityNotResolved,
    InsufficientRole,
    MalformedAuthorization,
    MissingAuthorization,
    UserVanished,
)
from gatheryourdeals.models.auth import Identity
from gatheryourdeals.models.user import Role
from gatheryourdeals.repositories import UserRepository
from gatheryourdeals.services.token_service import TokenManager

logger = structlog.get_logger(__name__)


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` value.

    Raises:
        MissingAuthorization: If the header is absent or empty
        MalformedAuthorization: If the scheme is not Bearer or the token is empty
    """
    if not authorization:
        raise MissingAuthorization()

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise MalformedAuthorization()

    token = parts[1]
    if not token.strip():
        raise MalformedAuthorization()
    return token


class RequestAuthorizer:
    """Two composable checks chained around protected operations.

    ``resolve_identity`` turns the Authorization header into an
    :class:`Identity`; ``require_role`` consumes that value. The role is
    re-read from the user repository on every request.
    """

    def __init__(self, tokens: TokenManager, users: UserRepository):
        self.tokens = tokens
        self.users = users

    async def resolve_identity(self, authorization: Optional[str]) -> Identity:
        """Resolve the caller of a request.

        Args:
            authorization: Raw Authorization header value, if any

        Returns:
            Identity with the user's ID, current role, and access token

        Raises:
            MissingAuthorization: No header
            MalformedAuthorization: Header is not ``Bearer <token>``
            InvalidOrExpiredToken: Token unknown, revoked, or expired
            UserVanished: Token is valid but its user no longer exists
        """
        access_token = parse_bearer(authorization)
        user_id = await self.tokens.resolve_access(access_token)

        user = await self.users.get_by_id(user_id)
        if user is None:
            logger.warning("token_user_missing", user_id=str(user_id))
            raise UserVanished()

        return Identity(user_id=user.id, role=user.role, access_token=access_token)

    @staticmethod
    def require_role(identity: Optional[Identity], role: Role) -> Identity:
        """Allow the request only if the resolved identity has ``role``.

        Raises:
            IdentityNotResolved: If called without a resolved identity
            InsufficientRole: If the identity has a different role
        """
        if identity is None:
            raise IdentityNotResolved("role check requires a resolved identity")

        if identity.role != role:
            logger.info(
                "role_check_denied",
                user_id=str(identity.user_id),
                required_role=role.value,
            )
            raise InsufficientRole(f"{role.value} access required")
        return identity

    @classmethod
    def require_admin(cls, identity: Optional[Identity]) -> Identity:
        return cls.require_role(identity, Role.ADMIN)
