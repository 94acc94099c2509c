"""Build the auth and billing services from Vault-held configuration.

Call build_account_services() once at process startup. It fails fast:
a missing auth secret raises ConfigurationError, a missing Vault setting
raises VaultError, and unreachable stores raise their client errors.
"""

import logging
from dataclasses import dataclass

from auth.config import AuthConfig
from auth.crypto import TokenHasher
from auth.database import AuthDatabase
from auth.magic_link import MagicLinkService
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from billing.config import BillingConfig, resolve_billing_mode
from billing.database import BillingDatabase
from billing.service import EntitlementService
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_auth_secret,
    get_database_url,
    get_stripe_config,
    get_valkey_url,
)

logger = logging.getLogger(__name__)


@dataclass
class AccountServices:
    """Everything a request handler needs from this package."""

    auth: AuthService
    entitlements: EntitlementService
    postgres: PostgresClient
    valkey: ValkeyClient

    def close(self) -> None:
        self.valkey.close()
        self.postgres.close()


def build_account_services(
    auth_config: AuthConfig | None = None,
    billing_config: BillingConfig | None = None,
) -> AccountServices:
    auth_config = auth_config or AuthConfig()
    billing_config = billing_config or BillingConfig()

    hasher = TokenHasher(get_auth_secret(), require_secret=auth_config.require_secret)

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())

    auth_db = AuthDatabase(postgres)
    auth_service = AuthService(
        config=auth_config,
        auth_db=auth_db,
        magic_links=MagicLinkService(auth_db, hasher, auth_config),
        session_manager=SessionManager(valkey, hasher, auth_config),
        rate_limiter=RateLimiter(valkey, auth_config),
        security_logger=SecurityLogger(postgres),
    )

    stripe = get_stripe_config()
    explicit_mode = billing_config.stripe_mode.value if billing_config.stripe_mode else stripe["mode"]
    billing_mode = resolve_billing_mode(explicit_mode, stripe["secret_key"])
    entitlements = EntitlementService(BillingDatabase(postgres), billing_mode)

    logger.info(f"Account services ready (billing mode: {billing_mode.value})")
    return AccountServices(
        auth=auth_service,
        entitlements=entitlements,
        postgres=postgres,
        valkey=valkey,
    )
