"""Billing configuration and Stripe mode resolution."""

import logging

from pydantic import BaseModel, Field

from billing.types import BillingMode

logger = logging.getLogger(__name__)


class BillingConfig(BaseModel):
    """Billing configuration."""

    stripe_mode: BillingMode | None = Field(
        default=None,
        description="Explicit Stripe mode; inferred from the secret key when unset",
    )


def resolve_billing_mode(explicit: str | None, secret_key: str | None) -> BillingMode:
    """Decide which Stripe mode's subscriptions count.

    An explicit "test"/"live" wins. Otherwise the secret key prefix decides,
    defaulting to test so a misconfigured deploy never reads live records.
    """
    if explicit in (BillingMode.TEST.value, BillingMode.LIVE.value):
        return BillingMode(explicit)

    key = secret_key or ""
    if key.startswith("sk_live_"):
        return BillingMode.LIVE
    if key.startswith("sk_test_"):
        return BillingMode.TEST

    logger.warning("Stripe mode not configured and key prefix unknown; using test mode")
    return BillingMode.TEST
