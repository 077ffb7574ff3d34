"""Payment configuration and confirmation models."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, SecretStr


class PaymentMethod(str, Enum):
    """Processor mode selected by the active payment configuration."""
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CARD = "card"


class PaymentSource(str, Enum):
    """Where a payment confirmation came from."""
    PROCESSOR_VERIFIED = "processor_verified"
    MANUAL_ADMIN = "manual_admin"
    SELF_REPORTED = "self_reported"


# Fields that belong to each method; everything else is cleared on save
METHOD_FIELDS: dict[PaymentMethod, tuple[str, ...]] = {
    PaymentMethod.BANK_TRANSFER: ("bank_name", "account_holder", "iban", "bic_swift"),
    PaymentMethod.PAYPAL: ("paypal_email",),
    PaymentMethod.STRIPE: ("stripe_publishable_key", "stripe_secret_key", "stripe_webhook_secret"),
    PaymentMethod.CARD: ("card_instructions",),
}


class PublicPaymentConfiguration(BaseModel):
    """Payment configuration as exposed to payers. Never carries secrets."""
    payment_method: PaymentMethod
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    iban: Optional[str] = None
    bic_swift: Optional[str] = None
    paypal_email: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    card_instructions: Optional[str] = None
    additional_instructions: Optional[str] = None


class PaymentConfiguration(PublicPaymentConfiguration):
    """Single active payment_settings row, including processor secrets."""
    id: Optional[str] = None
    stripe_secret_key: Optional[SecretStr] = None
    stripe_webhook_secret: Optional[SecretStr] = None
    is_active: bool = True
    updated_at: Optional[str] = None

    def public_view(self) -> PublicPaymentConfiguration:
        """Client-facing copy with secrets stripped."""
        return PublicPaymentConfiguration.model_validate(
            self.model_dump(include=set(PublicPaymentConfiguration.model_fields))
        )

    def to_row(self) -> dict:
        """Row for payment_settings, keeping only the selected method's fields."""
        row = {
            "payment_method": self.payment_method.value,
            "additional_instructions": self.additional_instructions,
            "is_active": self.is_active,
        }
        for method, fields in METHOD_FIELDS.items():
            for field_name in fields:
                value = getattr(self, field_name) if method == self.payment_method else None
                if isinstance(value, SecretStr):
                    value = value.get_secret_value()
                row[field_name] = value
        return row


class PaymentInstructions(BaseModel):
    """Manual payment details rendered to the payer."""
    submission_id: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    iban: Optional[str] = None
    bic_swift: Optional[str] = None
    paypal_email: Optional[str] = None
    card_instructions: Optional[str] = None
    additional_instructions: Optional[str] = None
    reference: str = Field(..., description="Reference the payer quotes with the transfer")


class PaymentIntent(BaseModel):
    """Processor payment intent handed to the client."""
    payment_intent_id: str
    client_secret: str
    amount_minor_units: int
    currency: str


class CheckoutSession(BaseModel):
    """Processor hosted checkout session."""
    session_id: str
    url: Optional[str] = None


class PaymentConfirmation(BaseModel):
    """A confirmation that a submission's commission was paid."""
    submission_id: str
    source: PaymentSource
    reference: Optional[str] = Field(None, description="Processor event/intent id or manual note")
    confirmed_by: Optional[str] = Field(None, description="User who confirmed, for manual sources")
    amount: Optional[Decimal] = None
