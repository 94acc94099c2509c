"""Typed exceptions for billing and feature gating."""


class BillingError(Exception):
    """Base class for billing errors."""


class ProRequiredError(BillingError):
    """Feature needs an active pro entitlement."""

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__("Pro plan required")
