"""Payment configuration management (single active payment_settings row)."""

from typing import Optional
from src.models.payment import PaymentConfiguration, PaymentMethod, PublicPaymentConfiguration
from src.services.supabase_client import (
    deactivate_payment_settings,
    get_active_payment_settings,
    insert_payment_settings,
    update_payment_settings,
    generate_record_id,
    now_iso,
)
from src.utils.errors import NotFoundError, ValidationError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

REQUIRED_FIELDS: dict[PaymentMethod, tuple[str, ...]] = {
    PaymentMethod.BANK_TRANSFER: ("iban",),
    PaymentMethod.PAYPAL: ("paypal_email",),
    PaymentMethod.STRIPE: ("stripe_publishable_key", "stripe_secret_key"),
    PaymentMethod.CARD: ("card_instructions",),
}


async def get_active_payment_configuration() -> Optional[PaymentConfiguration]:
    """Active configuration with secrets, for backend use only."""
    row = await get_active_payment_settings()
    return PaymentConfiguration.model_validate(row) if row else None


async def require_active_payment_configuration() -> PaymentConfiguration:
    config = await get_active_payment_configuration()
    if config is None:
        raise NotFoundError("Payment settings not configured")
    return config


async def get_public_payment_configuration() -> Optional[PublicPaymentConfiguration]:
    """Active configuration as shown to payers."""
    config = await get_active_payment_configuration()
    return config.public_view() if config else None


def validate_payment_configuration(config: PaymentConfiguration) -> None:
    field_errors = {}
    for field_name in REQUIRED_FIELDS[config.payment_method]:
        if not getattr(config, field_name):
            field_errors[field_name] = "required"
    key = config.stripe_publishable_key
    if config.payment_method == PaymentMethod.STRIPE and key and not key.startswith("pk_"):
        field_errors["stripe_publishable_key"] = "must start with pk_"
    if field_errors:
        raise ValidationError("Invalid payment settings", field_errors)


async def save_payment_configuration(config: PaymentConfiguration) -> PaymentConfiguration:
    """
    Save the payment configuration and make it the only active one.

    Fields that do not belong to the selected method are cleared.
    """
    validate_payment_configuration(config)
    row = config.to_row()
    row["is_active"] = True
    row["updated_at"] = now_iso()

    if config.id:
        saved = await update_payment_settings(config.id, row)
    else:
        await deactivate_payment_settings()
        row["id"] = generate_record_id()
        saved = await insert_payment_settings(row)

    logger.info("Payment settings saved", payment_method=config.payment_method.value)
    return PaymentConfiguration.model_validate(saved)
