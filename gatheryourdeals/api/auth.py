"""Registration, OAuth2 token, and logout endpoints."""

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from gatheryourdeals.api.dependencies import get_identity, get_services
from gatheryourdeals.errors import (
    InvalidCredential,
    InvalidOrExpiredToken,
    UnknownClient,
)
from gatheryourdeals.models.auth import (
    Identity,
    RegisterRequest,
    TokenResponse,
    UserSummary,
)
from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.wiring import Services

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Auth"])

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _oauth_error(status_code: int, error: str, description: str) -> JSONResponse:
    """Build an RFC 6749 section 5.2 error response."""
    headers = dict(NO_STORE_HEADERS)
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = 'Basic realm="oauth"'
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "error_description": description},
        headers=headers,
    )


def _token_response(record: TokenRecord, expires_in: int) -> JSONResponse:
    body = TokenResponse(
        access_token=record.access_token,
        refresh_token=record.refresh_token,
        expires_in=expires_in,
    )
    return JSONResponse(content=body.model_dump(), headers=NO_STORE_HEADERS)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    services: Services = Depends(get_services),
) -> UserSummary:
    """Create a new user.

    Requires a registered client_id so that only known applications can
    create accounts.

    Raises:
        AuthError 401: If the client_id is not registered
        AuthError 409: If the username already exists
    """
    if await services.client_service.get_client(request.client_id) is None:
        raise UnknownClient()

    user = await services.auth.register(request.username, request.password)
    return UserSummary(id=user.id, username=user.username, role=user.role)


@router.post("/oauth/token")
async def token(
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    """OAuth2 token endpoint.

    Supports the resource owner password credentials grant
    (``grant_type=password&username=...&password=...&client_id=...``) and the
    refresh token grant (``grant_type=refresh_token&refresh_token=...&client_id=...``).
    Confidential clients must also send ``client_secret``.
    """
    form = await request.form()
    client_id = str(form.get("client_id") or "").strip()
    client_secret = str(form.get("client_secret") or "")
    grant_type = str(form.get("grant_type") or "").strip()

    if not client_id:
        return _oauth_error(status.HTTP_401_UNAUTHORIZED, "invalid_client", "client_id is required")

    try:
        await services.token_manager.authenticate_client(client_id, client_secret)
    except UnknownClient as e:
        return _oauth_error(status.HTTP_401_UNAUTHORIZED, "invalid_client", e.message)

    expires_in = services.token_manager.access_ttl_seconds

    if grant_type == "password":
        username = str(form.get("username") or "")
        password = str(form.get("password") or "")
        if not username or not password:
            return _oauth_error(
                status.HTTP_400_BAD_REQUEST, "invalid_request", "username and password are required"
            )

        try:
            user = await services.auth.login(username, password)
        except InvalidCredential as e:
            return _oauth_error(status.HTTP_400_BAD_REQUEST, "invalid_grant", e.message)

        record = await services.token_manager.issue(user.id, client_id)
        return _token_response(record, expires_in)

    if grant_type == "refresh_token":
        refresh_token = str(form.get("refresh_token") or "")
        if not refresh_token:
            return _oauth_error(
                status.HTTP_400_BAD_REQUEST, "invalid_request", "refresh_token is required"
            )

        try:
            record = await services.token_manager.refresh(refresh_token, client_id=client_id)
        except InvalidOrExpiredToken as e:
            return _oauth_error(status.HTTP_400_BAD_REQUEST, "invalid_grant", e.message)
        except UnknownClient as e:
            return _oauth_error(status.HTTP_401_UNAUTHORIZED, "invalid_client", e.message)

        return _token_response(record, expires_in)

    return _oauth_error(
        status.HTTP_400_BAD_REQUEST, "unsupported_grant_type", "use password or refresh_token"
    )


@router.delete("/oauth/sessions")
async def logout(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
) -> dict:
    """Delete the current session by revoking its access token."""
    await services.token_manager.revoke(identity.access_token)
    logger.info("user_logged_out", user_id=str(identity.user_id))
    return {"message": "logged out"}
