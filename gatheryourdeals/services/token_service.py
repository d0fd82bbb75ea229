"""OAuth2 token lifecycle: issue, resolve, refresh (rotate), revoke."""

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from gatheryourdeals.errors import (
    InvalidClientSecret,
    InvalidOrExpiredToken,
    UnknownClient,
)
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.repositories import ClientRepository, TokenStore

logger = structlog.get_logger(__name__)

# Constants
DEFAULT_ACCESS_TOKEN_TTL = timedelta(hours=1)
DEFAULT_REFRESH_TOKEN_TTL = timedelta(hours=168)
TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Issues and validates access/refresh token pairs.

    Clients are looked up in the live registry on every issuance, so a
    revoked client cannot obtain new tokens. Access tokens already issued
    under a revoked client stay valid until they expire or are revoked.
    """

    def __init__(
        self,
        clients: ClientRepository,
        tokens: TokenStore,
        access_ttl: timedelta = DEFAULT_ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.clients = clients
        self.tokens = tokens
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return int(self.access_ttl.total_seconds())

    async def authenticate_client(
        self, client_id: str, client_secret: Optional[str] = None
    ) -> OAuthClient:
        """Check a client_id (and secret, for confidential clients).

        Args:
            client_id: Registered client identifier
            client_secret: Presented secret; ignored for public clients

        Returns:
            The registered OAuthClient

        Raises:
            UnknownClient: If the client is not registered
            InvalidClientSecret: If the client has a secret and it does not match
        """
        client = await self.clients.get_by_id(client_id)
        if client is None:
            logger.info("client_unknown", client_id=client_id)
            raise UnknownClient()

        if not client.is_public and not hmac.compare_digest(
            client.secret.encode("utf-8"), (client_secret or "").encode("utf-8")
        ):
            logger.info("client_secret_mismatch", client_id=client_id)
            raise InvalidClientSecret()

        return client

    async def issue(self, user_id: UUID, client_id: str) -> TokenRecord:
        """Mint and store a token pair for a verified (user, client).

        Raises:
            UnknownClient: If the client is not (or no longer) registered
        """
        if await self.clients.get_by_id(client_id) is None:
            logger.info("client_unknown", client_id=client_id)
            raise UnknownClient()

        record = self._new_record(user_id, client_id)
        await self.tokens.save(record)

        logger.info(
            "token_issued",
            user_id=str(user_id),
            client_id=client_id,
            access_expires_at=record.access_expires_at.isoformat(),
        )
        return record

    async def resolve_access(self, access_token: str) -> UUID:
        """Resolve an access token to the user it was issued to.

        Raises:
            InvalidOrExpiredToken: If the token is unknown, revoked, or expired
        """
        record = await self.tokens.get_by_access(access_token)
        if record is None:
            raise InvalidOrExpiredToken()

        if record.access_expired(self.clock()):
            raise InvalidOrExpiredToken()

        return record.user_id

    async def refresh(
        self, refresh_token: str, client_id: Optional[str] = None
    ) -> TokenRecord:
        """Exchange a refresh token for a new pair, consuming the old one.

        Performs rotation: the presented refresh token and its access token
        are invalidated and a new pair is bound to the same (user, client).
        Of several concurrent calls with the same token, at most one succeeds.

        Args:
            refresh_token: The refresh token to exchange
            client_id: Requesting client; must match the bound client if given

        Returns:
            The new TokenRecord

        Raises:
            InvalidOrExpiredToken: If the token is unknown, expired, already
                rotated, or bound to a different client
            UnknownClient: If the bound client has been revoked
        """
        old = await self.tokens.get_by_refresh(refresh_token)
        if old is None:
            raise InvalidOrExpiredToken()

        if old.refresh_expired(self.clock()):
            raise InvalidOrExpiredToken()

        if client_id is not None and client_id != old.client_id:
            logger.warning(
                "refresh_token_client_mismatch",
                bound_client_id=old.client_id,
                client_id=client_id,
            )
            raise InvalidOrExpiredToken()

        if await self.clients.get_by_id(old.client_id) is None:
            logger.info("client_unknown", client_id=old.client_id)
            raise UnknownClient()

        new = self._new_record(old.user_id, old.client_id)
        if not await self.tokens.rotate(old, new):
            logger.warning("refresh_token_reused", user_id=str(old.user_id))
            raise InvalidOrExpiredToken()

        logger.info(
            "refresh_token_rotated",
            user_id=str(new.user_id),
            client_id=new.client_id,
        )
        return new

    async def revoke(self, access_token: str) -> None:
        """Invalidate an access token. Unknown tokens are ignored."""
        await self.tokens.remove_access(access_token)
        logger.info("access_token_revoked")

    def _new_record(self, user_id: UUID, client_id: str) -> TokenRecord:
        now = self.clock()
        return TokenRecord(
            access_token=secrets.token_urlsafe(TOKEN_BYTES),
            refresh_token=secrets.token_urlsafe(TOKEN_BYTES),
            user_id=user_id,
            client_id=client_id,
            access_expires_at=now + self.access_ttl,
            refresh_expires_at=now + self.refresh_ttl,
            created_at=now,
        )
