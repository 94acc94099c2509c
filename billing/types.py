"""Billing domain models.

Subscription rows are written by the billing-sync collaborator from Stripe
webhooks. This package only reads them.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class SubscriptionStatus(str, Enum):
    """Stripe subscription status. Closed set - see billing.entitlement."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"


class BillingMode(str, Enum):
    """Stripe key family. Test and live records never mix."""

    TEST = "test"
    LIVE = "live"


class Subscription(BaseModel):
    """Locally mirrored Stripe subscription."""

    user_id: UUID
    stripe_subscription_id: str | None = None
    status: SubscriptionStatus
    current_period_end: datetime | None = None
    ended_at: datetime | None = None
    cancel_at_period_end: bool = False
    billing_mode: BillingMode

    model_config = {"from_attributes": True}


class Entitlement(BaseModel):
    """Access level derived from a subscription at a point in time."""

    plan: Plan
    is_pro: bool
    pro_valid_until: datetime | None = None
    subscription_status: SubscriptionStatus | None = None
    billing_mode: BillingMode | None = None

    model_config = {"frozen": True}
