"""Error taxonomy for authentication, tokens, and client management.

Policy violations derive from :class:`AuthError`. They are expected outcomes
with a stable ``code`` that the HTTP layer maps to a status without leaking
internals. Store and infrastructure failures are never wrapped in these
types; they propagate unchanged.
"""

from fastapi import status


class AuthError(Exception):
    """Base class for expected, user-facing auth outcomes."""

    code: str = "auth_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Authentication error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AdminAlreadyExists(AuthError):
    code = "admin_already_exists"
    status_code = status.HTTP_409_CONFLICT
    message = "admin account already exists"


class UsernameTaken(AuthError):
    code = "username_taken"
    status_code = status.HTTP_409_CONFLICT
    message = "username already exists"


class InvalidCredential(AuthError):
    """Unknown username or wrong password. Both cases share this type."""

    code = "invalid_credential"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "invalid username or password"


class UserNotFound(AuthError):
    code = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "user not found"


class PasswordTooLong(AuthError):
    code = "password_too_long"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "password must be at most 72 bytes"


# ---------------------------------------------------------------------------
# Clients and tokens
# ---------------------------------------------------------------------------


class UnknownClient(AuthError):
    code = "unknown_client"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "invalid client_id"


class InvalidClientSecret(UnknownClient):
    code = "invalid_client_secret"
    message = "invalid client credentials"


class ClientAlreadyExists(AuthError):
    code = "client_already_exists"
    status_code = status.HTTP_409_CONFLICT
    message = "client ID already exists"


class ClientNotFound(AuthError):
    code = "client_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "client not found"


class InvalidOrExpiredToken(AuthError):
    code = "invalid_or_expired_token"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "invalid or expired token"


# ---------------------------------------------------------------------------
# Request authorization
# ---------------------------------------------------------------------------


class MissingAuthorization(AuthError):
    code = "missing_authorization"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "missing authorization header"


class MalformedAuthorization(AuthError):
    code = "malformed_authorization"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "invalid authorization header format"


class UserVanished(AuthError):
    code = "user_not_found"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "user not found"


class InsufficientRole(AuthError):
    code = "insufficient_role"
    status_code = status.HTTP_403_FORBIDDEN
    message = "admin access required"


# ---------------------------------------------------------------------------
# Faults (not policy outcomes)
# ---------------------------------------------------------------------------


class MalformedHashError(ValueError):
    """A stored password digest is not a valid bcrypt hash."""


class IdentityNotResolved(RuntimeError):
    """A role check ran without a resolved identity."""
