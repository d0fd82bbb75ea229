"""Token pair record shared by the token manager and token stores."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TokenRecord(BaseModel):
    """An access/refresh pair bound to one (user, client)."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    user_id: UUID
    client_id: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    created_at: datetime

    def access_expired(self, now: datetime) -> bool:
        return now >= self.access_expires_at

    def refresh_expired(self, now: datetime) -> bool:
        return now >= self.refresh_expires_at
