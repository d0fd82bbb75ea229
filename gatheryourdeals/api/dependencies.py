"""FastAPI dependencies for authentication and authorization."""

import structlog
from fastapi import Depends, Request

from gatheryourdeals.models.auth import Identity
from gatheryourdeals.services.authorizer import RequestAuthorizer
from gatheryourdeals.wiring import Services


def get_services(request: Request) -> Services:
    """Return the services built by the application lifespan."""
    return request.app.state.services


async def get_identity(
    request: Request,
    services: Services = Depends(get_services),
) -> Identity:
    """Resolve the bearer token on the request to an Identity.

    The identity is also stored on ``request.state.identity`` and bound to
    the logging context for downstream handlers.

    Raises:
        AuthError 401: Missing/malformed header, invalid or expired token,
            or the token's user no longer exists
    """
    identity = await services.authorizer.resolve_identity(
        request.headers.get("Authorization")
    )
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(identity.user_id))
    return identity


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Require the resolved identity to have the admin role.

    Raises:
        AuthError 403: If the user is not an admin
    """
    return RequestAuthorizer.require_admin(identity)
