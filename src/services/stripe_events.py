"""Stripe webhook event handling - turns paid events into payment confirmations."""

from typing import Optional
from src.models.payment import PaymentConfirmation, PaymentSource
from src.services.payments import confirm_payment
from src.services.webhook_dedup import is_duplicate_event, mark_event_processed
from src.utils.errors import NotFoundError
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


def extract_confirmation(event: dict) -> Optional[PaymentConfirmation]:
    """
    Confirmation carried by a Stripe event, or None when the event is not
    a completed payment for a submission.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    submission_id = metadata.get("submissionId")

    if event_type == CHECKOUT_SESSION_COMPLETED and obj.get("payment_status") != "paid":
        return None
    if event_type not in (PAYMENT_INTENT_SUCCEEDED, CHECKOUT_SESSION_COMPLETED):
        return None
    if not submission_id:
        logger.info("Paid event without submission metadata ignored", event_type=event_type)
        return None

    return PaymentConfirmation(
        submission_id=submission_id,
        source=PaymentSource.PROCESSOR_VERIFIED,
        reference=obj.get("payment_intent") or obj.get("id") or event.get("id"),
    )


async def handle_stripe_event(event: dict) -> str:
    """
    Process a verified Stripe event.

    Returns "duplicate", "ignored" or "processed". The event is recorded as
    processed only after its confirmation has been applied, so a store
    failure is retried on Stripe's redelivery. A payment for a submission
    that does not exist is logged for refund and ignored.
    """
    if await is_duplicate_event(event):
        return "duplicate"

    confirmation = extract_confirmation(event)
    if confirmation is None:
        logger.debug("Stripe event ignored", event_type=event.get("type"), event_id=event.get("id"))
        await mark_event_processed(event)
        return "ignored"

    with log_timing(
        "handle_stripe_payment",
        logger=logger,
        event_id=event.get("id"),
        submission_id=confirmation.submission_id,
    ):
        try:
            await confirm_payment(confirmation)
        except NotFoundError:
            # Not retryable, the charge needs a manual refund
            logger.error(
                "Payment for unknown submission, refund manually",
                event_id=event.get("id"),
                submission_id=confirmation.submission_id,
                reference=confirmation.reference,
            )
            await mark_event_processed(event)
            return "ignored"

    await mark_event_processed(event)
    logger.info(
        "Stripe payment event processed",
        event_id=event.get("id"),
        event_type=event.get("type"),
        submission_id=confirmation.submission_id,
    )
    return "processed"
