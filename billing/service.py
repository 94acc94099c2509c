"""Entitlement lookups for feature gates and account pages."""

import logging
from datetime import datetime
from uuid import UUID

from billing.database import BillingDatabase
from billing.entitlement import compute_entitlement
from billing.exceptions import ProRequiredError
from billing.types import BillingMode, Entitlement
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class EntitlementService:
    """Computes entitlements from the latest synchronized subscription.

    Always recomputed per call. The plan cache on users is written by
    refresh_cached_plan but never read for access decisions.
    """

    def __init__(self, billing_db: BillingDatabase, billing_mode: BillingMode):
        self._billing_db = billing_db
        self._billing_mode = billing_mode

    @property
    def billing_mode(self) -> BillingMode:
        return self._billing_mode

    def get_entitlement(self, user_id: UUID, now: datetime | None = None) -> Entitlement:
        subscription = self._billing_db.get_subscription(user_id, self._billing_mode)
        return compute_entitlement(subscription, now or now_utc())

    def refresh_cached_plan(self, user_id: UUID) -> Entitlement:
        """Recompute and store the advisory plan cache (after a billing sync)."""
        entitlement = self.get_entitlement(user_id)
        if not self._billing_db.update_cached_plan(user_id, entitlement):
            logger.warning(f"Plan cache not updated: user {user_id} not found")
        return entitlement

    def require_pro(self, user_id: UUID) -> Entitlement:
        """Gate a pro-only feature.

        Raises:
            ProRequiredError: If the user does not currently hold pro access.
        """
        entitlement = self.get_entitlement(user_id)
        if not entitlement.is_pro:
            raise ProRequiredError(user_id)
        return entitlement
