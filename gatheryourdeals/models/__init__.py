"""Models package exports."""

from gatheryourdeals.models.auth import (
    ClientSummary,
    CreateClientRequest,
    Identity,
    RegisterRequest,
    TokenResponse,
    UserSummary,
)
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.models.user import Role, User

__all__ = [
    "ClientSummary",
    "CreateClientRequest",
    "Identity",
    "OAuthClient",
    "RegisterRequest",
    "Role",
    "TokenRecord",
    "TokenResponse",
    "User",
    "UserSummary",
]
