"""OAuth2 client administration and first-boot seeding."""

from datetime import datetime, timezone
from typing import Iterable

import structlog

from gatheryourdeals.config import ClientSeed
from gatheryourdeals.errors import ClientAlreadyExists, ClientNotFound
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.repositories import ClientRepository

logger = structlog.get_logger(__name__)


class ClientService:
    """Service for registering, listing, and revoking OAuth2 clients."""

    def __init__(self, clients: ClientRepository):
        self.clients = clients

    async def create_client(self, client_id: str, secret: str = "", domain: str = "") -> OAuthClient:
        """Register a new OAuth2 client.

        Args:
            client_id: Externally chosen, unique client ID
            secret: Client secret; empty registers a public client
            domain: Redirect domain

        Returns:
            Created OAuthClient

        Raises:
            ClientAlreadyExists: If the ID is already registered
        """
        if await self.clients.get_by_id(client_id) is not None:
            raise ClientAlreadyExists()

        client = OAuthClient(
            id=client_id,
            secret=secret,
            domain=domain,
            created_at=datetime.now(timezone.utc),
        )
        await self.clients.create_client(client)

        logger.info("client_created", client_id=client_id, public=client.is_public)
        return client

    async def get_client(self, client_id: str) -> OAuthClient | None:
        return await self.clients.get_by_id(client_id)

    async def list_clients(self) -> list[OAuthClient]:
        return await self.clients.list_all()

    async def delete_client(self, client_id: str) -> None:
        """Revoke a client. New token operations for it fail from now on.

        Raises:
            ClientNotFound: If the client is not registered
        """
        if await self.clients.get_by_id(client_id) is None:
            raise ClientNotFound()

        await self.clients.delete_by_id(client_id)
        logger.info("client_revoked", client_id=client_id)

    async def seed_clients(self, seeds: Iterable[ClientSeed]) -> list[str]:
        """Insert configured clients if the registry is empty.

        Returns:
            IDs of the clients that were inserted (empty if the registry
            already had clients)
        """
        if await self.clients.has_any_client():
            return []

        seeded = []
        for seed in seeds:
            await self.create_client(seed.id, secret=seed.secret, domain=seed.domain)
            seeded.append(seed.id)
            logger.info("client_seeded", client_id=seed.id)

        if not seeded:
            logger.warning("no_clients_registered", note="Configure OAUTH_CLIENTS to seed one")
        return seeded
