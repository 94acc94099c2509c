"""Database reads for subscriptions and writes for the user plan cache.

Tables: subscriptions (owned by billing sync), users (plan cache columns).
"""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from billing.types import BillingMode, Entitlement, Subscription

logger = logging.getLogger(__name__)


class BillingDatabase:
    """Subscription lookups and plan cache updates."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_subscription(self, user_id: UUID, mode: BillingMode) -> Subscription | None:
        """Most recently updated subscription for user in this Stripe mode.

        Raises:
            pydantic.ValidationError: If the stored status is not a known
                SubscriptionStatus.
        """
        row = self._db.execute_single(
            """SELECT user_id, stripe_subscription_id, status, current_period_end,
                      ended_at, cancel_at_period_end, billing_mode
               FROM subscriptions
               WHERE user_id = %s AND billing_mode = %s
               ORDER BY updated_at DESC
               LIMIT 1""",
            (user_id, mode.value),
        )
        if row is None:
            return None
        return Subscription.model_validate(row)

    def update_cached_plan(self, user_id: UUID, entitlement: Entitlement) -> bool:
        """Write the advisory plan cache on the user row.

        Returns:
            True if the user exists.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET plan = %s, is_pro = %s, pro_valid_until = %s
               WHERE id = %s
               RETURNING id""",
            (
                entitlement.plan.value,
                entitlement.is_pro,
                entitlement.pro_valid_until,
                user_id,
            ),
        )
        return len(rows) > 0
