"""Authentication configuration."""

from urllib.parse import quote

from pydantic import BaseModel, Field

# 32 bytes = 256 bits of entropy
MIN_TOKEN_BYTES = 32


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations use their natural units: minutes for magic links, seconds for
    the request cooldown, days for sessions.
    """

    # Magic link settings
    magic_link_expiry_minutes: int = Field(
        default=20,
        description="How long magic links remain valid",
        ge=5,
        le=60,
    )
    magic_link_cooldown_seconds: int = Field(
        default=60,
        description="Minimum gap between two magic links for the same user (0 disables)",
        ge=0,
        le=3600,
    )
    token_bytes: int = Field(
        default=MIN_TOKEN_BYTES,
        description="Random bytes per magic link and session token",
        ge=MIN_TOKEN_BYTES,
        le=128,
    )

    # Session settings
    session_expiry_days: int = Field(
        default=30,
        description="Session lifetime in days",
        ge=1,
        le=90,
    )
    session_cookie_name: str = Field(
        default="qt_session",
        description="Cookie the transport layer stores the session token in",
    )

    # Secrets
    require_secret: bool = Field(
        default=True,
        description="Refuse to hash without a server secret (disable only for local development)",
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for magic link generation",
    )
    callback_path: str = Field(
        default="/auth/callback",
        description="Path that redeems the magic link token",
    )

    @property
    def session_expiry_seconds(self) -> int:
        return self.session_expiry_days * 86400

    def magic_link_url(self, token: str) -> str:
        """Build the emailed login URL for a plaintext token."""
        base = self.app_base_url.rstrip("/")
        path = "/" + self.callback_path.lstrip("/")
        return f"{base}{path}?token={quote(token, safe='')}"
