"""Auth request and response models with validation."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gatheryourdeals.models.user import Role


@dataclass(frozen=True)
class Identity:
    """Who is making the current request, resolved from the bearer token.

    Produced by identity resolution and consumed by role checks and logout.
    """

    user_id: UUID
    role: Role
    access_token: str


class RegisterRequest(BaseModel):
    """Open registration request.

    Attributes:
        username: Unique, case-sensitive username
        password: Plain-text password (min 8 chars)
        client_id: Registered OAuth2 client making the request
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8)
    client_id: str = Field(..., alias="clientId", min_length=1)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        """Ensure username is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Username cannot be empty or whitespace only")
        return v


class UserSummary(BaseModel):
    """Public representation of a user."""

    id: UUID
    username: str
    role: Role


class TokenResponse(BaseModel):
    """OAuth2 token endpoint success body (RFC 6749 section 5.1)."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")
    refresh_token: str


class CreateClientRequest(BaseModel):
    """Admin request to register an OAuth2 client."""

    id: str = Field(..., min_length=1, max_length=255)
    secret: str = ""
    domain: str = ""


class ClientSummary(BaseModel):
    """Client representation for admin responses. Never carries the secret."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    domain: str
    created_at: datetime = Field(serialization_alias="createdAt")
