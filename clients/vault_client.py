"""
HashiCorp Vault client for QuickTools secret management.

Uses AppRole authentication. Fails fast on missing configuration.
All paths scoped to 'quicktools/' prefix - no escape to other secrets.

The auth secret fetched here is the pepper for every token and session
digest. It must stay stable across deployments: changing it invalidates all
outstanding magic links and sessions at once.
"""

import os
import logging
import threading
from typing import Dict

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized
from hvac.exceptions import VaultError as HvacError

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "quicktools"

# Process-wide client, created once on first use
_vault_client_instance: "VaultClient | None" = None
_vault_client_lock = threading.Lock()
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        with _vault_client_lock:
            if _vault_client_instance is None:
                _vault_client_instance = VaultClient()
    return _vault_client_instance


def reset_vault_client() -> None:
    """Drop the cached client and secrets (tests and credential rotation)."""
    global _vault_client_instance
    with _vault_client_lock:
        _vault_client_instance = None
        _secret_cache.clear()


class VaultError(Exception):
    """Vault operation failed. Fatal - application cannot function without secrets."""


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise VaultError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise VaultError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise VaultError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
        except HvacError as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise VaultError(f"AppRole authentication failed: {e}") from e

        self.client.token = auth_response["auth"]["client_token"]
        logger.info("AppRole authentication successful")

    def get_secret(self, path: str, field: str) -> str:
        """
        Retrieve single field from KV v2 secret.

        Path is automatically scoped to 'quicktools/' prefix.
        Caller passes 'auth', we access 'quicktools/auth'.

        Raises:
            VaultError: Path not accessible or doesn't exist.
            KeyError: Field not found in secret.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise VaultError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}': {e}") from e

        secret_data = response["data"]["data"]
        if field not in secret_data:
            available = list(secret_data.keys())
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(available)}"
            )

        return secret_data[field]


def _cached_secret(path: str, field: str) -> str:
    cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
    if cache_key not in _secret_cache:
        _secret_cache[cache_key] = _ensure_vault_client().get_secret(path, field)
    return _secret_cache[cache_key]


def get_database_url() -> str:
    """Get PostgreSQL connection URL from Vault."""
    return _cached_secret("database", "url")


def get_valkey_url() -> str:
    """Get Valkey (Redis) connection URL from Vault."""
    return _cached_secret("valkey", "url")


def get_auth_secret() -> str:
    """Get the token hashing pepper from Vault."""
    return _cached_secret("auth", "secret")


def get_stripe_config() -> Dict[str, str]:
    """Get Stripe configuration from Vault.

    Returns:
        Dict with keys: secret_key, mode. ``mode`` may be an empty string,
        in which case the billing mode is inferred from the key prefix.
    """
    return {
        "secret_key": _cached_secret("stripe", "secret_key"),
        "mode": _cached_secret("stripe", "mode"),
    }
