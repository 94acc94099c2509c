"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class User(BaseModel):
    """A registered user of the system.

    plan, is_pro and pro_valid_until are an advisory cache written by
    entitlement sync. Access decisions recompute from the subscription.
    """

    id: UUID
    email: EmailStr
    plan: str = "free"
    is_pro: bool = False
    pro_valid_until: datetime | None = None
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthToken(BaseModel):
    """A stored magic link token. Only the digest of the plaintext is kept."""

    id: UUID
    user_id: UUID
    token_hash: str = Field(..., min_length=1)
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None  # Required - fail closed, no default

    model_config = {"from_attributes": True}

    def is_redeemable(self, now: datetime) -> bool:
        return self.used_at is None and now < self.expires_at


class IssuedToken(BaseModel):
    """Plaintext magic link token, handed out exactly once at issuance."""

    token: str = Field(..., description="URL-safe token")
    expires_at: datetime


class Session(BaseModel):
    """An authenticated client session."""

    token: str = Field(..., description="Session token (opaque bearer string)")
    user_id: UUID
    created_at: datetime
    expires_at: datetime


class MagicLinkDispatch(BaseModel):
    """A login link ready for the email delivery collaborator."""

    email: EmailStr
    url: str
    expires_at: datetime


class AuthenticatedUser(BaseModel):
    """User info returned after successful authentication."""

    user: User
    session: Session
