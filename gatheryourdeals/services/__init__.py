"""Services package exports."""

from gatheryourdeals.services.auth_service import AuthService
from gatheryourdeals.services.authorizer import RequestAuthorizer
from gatheryourdeals.services.client_service import ClientService
from gatheryourdeals.services.logging_service import configure_logging, get_logger
from gatheryourdeals.services.password_service import PasswordHasher
from gatheryourdeals.services.token_service import TokenManager

__all__ = [
    "AuthService",
    "ClientService",
    "PasswordHasher",
    "RequestAuthorizer",
    "TokenManager",
    "configure_logging",
    "get_logger",
]
