"""Cooldown between magic link requests.

One link per user per cooldown window. The first request in a window
claims a Valkey key with SET NX EX; later requests find the key and are
throttled until it expires.
"""

from uuid import UUID

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-user magic link cooldown using Valkey."""

    KEY_PREFIX = "ratelimit:magic_link:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, user_id: UUID) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def check_magic_link_cooldown(self, user_id: UUID) -> None:
        """Claim the cooldown window for user_id.

        Raises:
            RateLimitedError: If a link was issued within the window.
        """
        window = self._config.magic_link_cooldown_seconds
        if window == 0:
            return

        if not self._valkey.set_if_absent(self._key(user_id), "1", expire_seconds=window):
            ttl = self._valkey.ttl(self._key(user_id))
            raise RateLimitedError(retry_after_seconds=max(ttl, 1))

    def reset(self, user_id: UUID) -> None:
        """Clear the cooldown (after a successful login)."""
        self._valkey.delete(self._key(user_id))
