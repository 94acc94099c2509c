"""Entitlement policy: subscription + time -> access.

Precedence:
1. No subscription -> free
2. ended_at at or before now -> free, whatever the status
3. active / trialing -> pro, open-ended
4. past_due / unpaid -> pro until current_period_end (grace), then free
5. anything else -> free

Every SubscriptionStatus member must sit in exactly one group below. A new
Stripe status added to the enum without a policy decision fails at import.
"""

from datetime import datetime

from billing.types import Entitlement, Plan, Subscription, SubscriptionStatus

FULL_ACCESS_STATUSES = frozenset({
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
})

GRACE_STATUSES = frozenset({
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.UNPAID,
})

NO_ACCESS_STATUSES = frozenset({
    SubscriptionStatus.CANCELED,
    SubscriptionStatus.INCOMPLETE,
    SubscriptionStatus.INCOMPLETE_EXPIRED,
    SubscriptionStatus.PAUSED,
})

_classified = FULL_ACCESS_STATUSES | GRACE_STATUSES | NO_ACCESS_STATUSES
_unclassified = set(SubscriptionStatus) - _classified
if _unclassified or len(_classified) != (
    len(FULL_ACCESS_STATUSES) + len(GRACE_STATUSES) + len(NO_ACCESS_STATUSES)
):
    raise RuntimeError(
        f"Subscription statuses without exactly one entitlement policy: "
        f"{sorted(s.value for s in _unclassified) or 'overlapping groups'}"
    )


def _free(subscription: Subscription | None) -> Entitlement:
    return Entitlement(
        plan=Plan.FREE,
        is_pro=False,
        subscription_status=subscription.status if subscription else None,
        billing_mode=subscription.billing_mode if subscription else None,
    )


def compute_entitlement(subscription: Subscription | None, now: datetime) -> Entitlement:
    """Pure and deterministic: same inputs, same Entitlement, no side effects."""
    if subscription is None:
        return _free(None)

    if subscription.ended_at is not None and subscription.ended_at <= now:
        return _free(subscription)

    status = subscription.status

    if status in FULL_ACCESS_STATUSES:
        return Entitlement(
            plan=Plan.PRO,
            is_pro=True,
            pro_valid_until=None,
            subscription_status=status,
            billing_mode=subscription.billing_mode,
        )

    if status in GRACE_STATUSES:
        period_end = subscription.current_period_end
        if period_end is not None and now < period_end:
            return Entitlement(
                plan=Plan.PRO,
                is_pro=True,
                pro_valid_until=period_end,
                subscription_status=status,
                billing_mode=subscription.billing_mode,
            )
        return _free(subscription)

    return _free(subscription)
