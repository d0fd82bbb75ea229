"""Registered OAuth2 client model."""

from datetime import datetime

from pydantic import BaseModel, Field


class OAuthClient(BaseModel):
    """A calling application allowed to request tokens.

    An empty ``secret`` marks a public client.
    """

    id: str
    secret: str = Field(default="", exclude=True, repr=False)
    domain: str = ""
    created_at: datetime

    @property
    def is_public(self) -> bool:
        return not self.secret
