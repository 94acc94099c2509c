"""Wiring for the account-access and entitlement services."""

from accounts.container import AccountServices, build_account_services
