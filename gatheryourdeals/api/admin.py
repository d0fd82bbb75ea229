"""Admin API endpoints for OAuth2 client management."""

import structlog
from fastapi import APIRouter, Depends, status

from gatheryourdeals.api.dependencies import get_services, require_admin
from gatheryourdeals.models.auth import ClientSummary, CreateClientRequest, Identity
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.wiring import Services

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _client_summary(client: OAuthClient) -> ClientSummary:
    """Convert an OAuthClient to a response model without its secret."""
    return ClientSummary(id=client.id, domain=client.domain, created_at=client.created_at)


@router.post("/clients", status_code=status.HTTP_201_CREATED)
async def create_client(
    request: CreateClientRequest,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
) -> ClientSummary:
    """Register a new OAuth2 client (admin only).

    Raises:
        AuthError 409: If the client ID already exists
    """
    client = await services.client_service.create_client(
        request.id, secret=request.secret, domain=request.domain
    )
    logger.info("admin_created_client", admin_id=str(admin.user_id), client_id=client.id)
    return _client_summary(client)


@router.get("/clients")
async def list_clients(
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
) -> list[ClientSummary]:
    """List all registered OAuth2 clients (admin only)."""
    clients = await services.client_service.list_clients()
    return [_client_summary(c) for c in clients]


@router.delete("/clients/{client_id}")
async def delete_client(
    client_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
) -> dict:
    """Revoke an OAuth2 client (admin only).

    Tokens already issued to the client stay valid until they expire; the
    client can no longer obtain or refresh tokens.

    Raises:
        AuthError 404: If the client does not exist
    """
    await services.client_service.delete_client(client_id)
    logger.info("admin_revoked_client", admin_id=str(admin.user_id), client_id=client_id)
    return {"message": "client revoked"}
