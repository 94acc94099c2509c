"""Tests for EntitlementService - feature gating over stored subscriptions."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest

from billing.database import BillingDatabase
from billing.exceptions import ProRequiredError
from billing.service import EntitlementService
from billing.types import BillingMode, Plan, Subscription, SubscriptionStatus
from utils.timezone import now_utc


@pytest.fixture
def billing_db():
    return Mock(spec=BillingDatabase)


@pytest.fixture
def entitlements(billing_db):
    return EntitlementService(billing_db, BillingMode.TEST)


def _subscription(user_id, status, **overrides) -> Subscription:
    fields = {
        "user_id": user_id,
        "status": status,
        "current_period_end": now_utc() + timedelta(days=5),
        "billing_mode": BillingMode.TEST,
    }
    fields.update(overrides)
    return Subscription(**fields)


class TestGetEntitlement:

    def test_queries_configured_mode(self, entitlements, billing_db):
        user_id = uuid4()
        billing_db.get_subscription.return_value = None

        entitlement = entitlements.get_entitlement(user_id)

        assert entitlement.plan == Plan.FREE
        billing_db.get_subscription.assert_called_once_with(user_id, BillingMode.TEST)
        assert entitlements.billing_mode == BillingMode.TEST

    def test_explicit_now(self, entitlements, billing_db):
        user_id = uuid4()
        period_end = now_utc() + timedelta(days=1)
        billing_db.get_subscription.return_value = _subscription(
            user_id, SubscriptionStatus.PAST_DUE, current_period_end=period_end
        )

        assert entitlements.get_entitlement(user_id, now=period_end - timedelta(seconds=1)).is_pro
        assert not entitlements.get_entitlement(user_id, now=period_end).is_pro


class TestRequirePro:

    def test_pro_user_passes(self, entitlements, billing_db):
        user_id = uuid4()
        billing_db.get_subscription.return_value = _subscription(user_id, SubscriptionStatus.TRIALING)

        assert entitlements.require_pro(user_id).is_pro is True

    def test_free_user_rejected(self, entitlements, billing_db):
        user_id = uuid4()
        billing_db.get_subscription.return_value = _subscription(user_id, SubscriptionStatus.CANCELED)

        with pytest.raises(ProRequiredError) as exc_info:
            entitlements.require_pro(user_id)

        assert exc_info.value.user_id == user_id
        assert str(exc_info.value) == "Pro plan required"


class TestRefreshCachedPlan:

    def test_writes_recomputed_entitlement(self, entitlements, billing_db):
        user_id = uuid4()
        billing_db.get_subscription.return_value = _subscription(user_id, SubscriptionStatus.ACTIVE)
        billing_db.update_cached_plan.return_value = True

        entitlement = entitlements.refresh_cached_plan(user_id)

        billing_db.update_cached_plan.assert_called_once_with(user_id, entitlement)
        assert entitlement.is_pro is True

    def test_missing_user_logged(self, entitlements, billing_db, caplog):
        billing_db.get_subscription.return_value = None
        billing_db.update_cached_plan.return_value = False

        entitlements.refresh_cached_plan(uuid4())

        assert "not found" in caplog.text
