"""Payment processor adapters, one per payment_settings method."""

from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
import httpx
from src.models.payment import (
    CheckoutSession,
    PaymentConfiguration,
    PaymentInstructions,
    PaymentIntent,
    PaymentMethod,
)
from src.models.submission import Submission
from src.utils.errors import ProcessorError, ValidationError
from src.utils.logging import get_structured_logger, log_timing
from src.utils.settings import MarketplaceConfig, get_stripe_secret_key_override

logger = get_structured_logger(__name__)

CHECKOUT_MODES = ("payment", "subscription")


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payment_intent_id_from_client_secret(client_secret: str) -> str:
    """pi_123_secret_abc -> pi_123"""
    if not client_secret or "_secret_" not in client_secret:
        raise ValidationError("Malformed client secret", {"client_secret": "invalid"})
    return client_secret.split("_secret_", 1)[0]


class PaymentProcessor(ABC):
    """Collects a submission's commission through one payment method."""

    method: PaymentMethod

    def __init__(self, config: PaymentConfiguration, currency: Optional[str] = None):
        self.config = config
        self.currency = (currency or MarketplaceConfig.PAYMENT_CURRENCY).lower()

    @property
    def verifies_payments(self) -> bool:
        """True when confirmations arrive as verified processor events."""
        return False

    @abstractmethod
    async def begin_payment(self, submission: Submission) -> Union[PaymentIntent, PaymentInstructions]:
        """Start collecting the submission's commission."""


class ManualProcessor(PaymentProcessor):
    """Bank transfer, PayPal or manual card payment rendered as instructions."""

    def __init__(self, config: PaymentConfiguration, currency: Optional[str] = None):
        super().__init__(config, currency)
        self.method = config.payment_method

    async def begin_payment(self, submission: Submission) -> PaymentInstructions:
        return self.instructions(submission)

    def instructions(self, submission: Submission) -> PaymentInstructions:
        public = self.config.public_view()
        return PaymentInstructions(
            submission_id=submission.id,
            amount=submission.commission_amount,
            currency=self.currency,
            payment_method=public.payment_method,
            bank_name=public.bank_name,
            account_holder=public.account_holder,
            iban=public.iban,
            bic_swift=public.bic_swift,
            paypal_email=public.paypal_email,
            card_instructions=public.card_instructions,
            additional_instructions=public.additional_instructions,
            reference=f"LISTING-{submission.id}",
        )


class StripeProcessor(PaymentProcessor):
    """Stripe REST API adapter. Every failure is a ProcessorError, never a success."""

    method = PaymentMethod.STRIPE

    def __init__(
        self,
        config: PaymentConfiguration,
        currency: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config, currency)
        secret = get_stripe_secret_key_override()
        if not secret and config.stripe_secret_key is not None:
            secret = config.stripe_secret_key.get_secret_value()
        if not secret:
            raise ProcessorError("Stripe is not configured")
        self._secret_key = secret
        self.api_base = (api_base or MarketplaceConfig.STRIPE_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else MarketplaceConfig.PAYMENT_PROCESSOR_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def verifies_payments(self) -> bool:
        return True

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {self._secret_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        try:
            async with self._client() as client:
                res = await client.request(method, path, data=data)
        except httpx.TimeoutException as e:
            logger.error("Stripe request timed out", path=path, timeout_seconds=self.timeout)
            raise ProcessorError("Payment processor timed out") from e
        except httpx.HTTPError as e:
            logger.error("Stripe request failed", path=path, error=str(e))
            raise ProcessorError(f"Payment processor unreachable: {e}") from e

        try:
            payload = res.json()
        except ValueError:
            payload = {}

        if res.status_code >= 400:
            message = (payload.get("error") or {}).get("message") or res.text
            logger.error("Stripe API error", path=path, status_code=res.status_code, error=message)
            raise ProcessorError(f"Stripe API error: {message}")

        return payload

    async def begin_payment(self, submission: Submission) -> PaymentIntent:
        return await self.create_payment_intent(
            to_minor_units(submission.commission_amount),
            self.currency,
            {"submissionId": submission.id, "userId": submission.user_id},
        )

    async def create_payment_intent(self, amount_minor_units: int, currency: str, metadata: dict) -> PaymentIntent:
        """Create a PaymentIntent with automatic payment methods."""
        if amount_minor_units <= 0:
            raise ValidationError("Amount must be positive", {"amount": "must be positive"})

        form = {
            "amount": str(amount_minor_units),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        with log_timing("stripe_create_payment_intent", logger=logger, amount=amount_minor_units):
            data = await self._request("POST", "/payment_intents", form)

        if not data.get("client_secret") or not data.get("id"):
            raise ProcessorError("No payment session created")

        return PaymentIntent(
            payment_intent_id=data["id"],
            client_secret=data["client_secret"],
            amount_minor_units=amount_minor_units,
            currency=currency.lower(),
        )

    async def confirm_payment(self, client_secret: str) -> str:
        """Return "succeeded" or "failed" for the intent behind a client secret."""
        intent_id = payment_intent_id_from_client_secret(client_secret)
        data = await self._request("GET", f"/payment_intents/{intent_id}")
        status = data.get("status")
        logger.info("Payment intent status retrieved", payment_intent_id=intent_id, status=status)
        return "succeeded" if status == "succeeded" else "failed"

    async def create_checkout_session(
        self,
        price_id: str,
        mode: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict] = None,
    ) -> CheckoutSession:
        """Create a hosted Checkout session for a catalog price."""
        field_errors = {}
        if not price_id:
            field_errors["priceId"] = "required"
        if not success_url:
            field_errors["successUrl"] = "required"
        if not cancel_url:
            field_errors["cancelUrl"] = "required"
        if mode not in CHECKOUT_MODES:
            field_errors["mode"] = "must be payment or subscription"
        if field_errors:
            raise ValidationError("Invalid checkout request", field_errors)

        form = {
            "mode": mode,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "payment_method_types[0]": "card",
        }
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = str(value)

        with log_timing("stripe_create_checkout_session", logger=logger, mode=mode):
            data = await self._request("POST", "/checkout/sessions", form)

        if not data.get("id"):
            raise ProcessorError("No checkout session created")
        return CheckoutSession(session_id=data["id"], url=data.get("url"))


def get_processor(config: PaymentConfiguration, **kwargs) -> PaymentProcessor:
    """Processor adapter for the configured payment method."""
    if config.payment_method == PaymentMethod.STRIPE:
        return StripeProcessor(config, **kwargs)
    return ManualProcessor(config, currency=kwargs.get("currency"))
