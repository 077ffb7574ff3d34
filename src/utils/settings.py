"""Marketplace configuration read from environment variables."""

import os
from decimal import Decimal


class MarketplaceConfig:
    """Centralized marketplace configuration."""

    # Commission
    COMMISSION_MINIMUM_FEE = Decimal(os.environ.get("COMMISSION_MINIMUM_FEE", "0.50"))
    COMMISSION_DEFAULT_RENT_PERCENTAGE = Decimal(os.environ.get("COMMISSION_DEFAULT_RENT_PERCENTAGE", "10"))
    COMMISSION_DEFAULT_SALE_PERCENTAGE = Decimal(os.environ.get("COMMISSION_DEFAULT_SALE_PERCENTAGE", "3"))

    # Payments
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "eur").lower()
    STRIPE_API_BASE = os.environ.get("STRIPE_API_BASE", "https://api.stripe.com/v1").rstrip("/")
    PAYMENT_PROCESSOR_TIMEOUT_SECONDS = float(os.environ.get("PAYMENT_PROCESSOR_TIMEOUT_SECONDS", "10"))
    STRIPE_WEBHOOK_TOLERANCE_SECONDS = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE_SECONDS", "300"))

    # Expiration sweeper
    EXPIRATION_SWEEP_INTERVAL_SECONDS = int(os.environ.get("EXPIRATION_SWEEP_INTERVAL_SECONDS", "60"))


def get_stripe_secret_key_override() -> str:
    """Stripe secret key from the environment, empty when unset."""
    return os.environ.get("STRIPE_SECRET_KEY", "").strip()


def get_stripe_webhook_secret_override() -> str:
    """Stripe webhook signing secret from the environment, empty when unset."""
    # Strip to remove trailing newlines pasted into the dashboard
    return os.environ.get("STRIPE_WEBHOOK_SECRET", "").strip()
