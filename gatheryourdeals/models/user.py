"""User and role models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Authorization level of a user."""

    ADMIN = "admin"
    USER = "user"


class User(BaseModel):
    """A registered account.

    ``password_hash`` stays inside the service layer: it is excluded from
    serialization and from ``repr``.
    """

    id: UUID
    username: str
    password_hash: str = Field(exclude=True, repr=False)
    role: Role = Role.USER
    created_at: datetime
    updated_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
