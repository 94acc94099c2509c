"""Subscription entitlement modules."""

from billing.types import (
    BillingMode,
    Entitlement,
    Plan,
    Subscription,
    SubscriptionStatus,
)
from billing.exceptions import BillingError, ProRequiredError
from billing.entitlement import compute_entitlement
from billing.config import BillingConfig, resolve_billing_mode
from billing.database import BillingDatabase
from billing.service import EntitlementService
