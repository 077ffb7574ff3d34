"""Payment collection and confirmation for submissions."""

from typing import Optional, Union
from src.models.admin import AdminContext
from src.models.payment import (
    CheckoutSession,
    PaymentConfiguration,
    PaymentConfirmation,
    PaymentInstructions,
    PaymentIntent,
    PaymentMethod,
    PaymentSource,
)
from src.models.submission import Submission, SubmissionStatus, PaymentStatus
from src.services import submission_store
from src.services.admin_users import require_admin
from src.services.lifecycle import handle_payment_confirmed
from src.services.payment_gate import requires_payment
from src.services.payment_processors import (
    ManualProcessor,
    StripeProcessor,
    get_processor,
    to_minor_units,
)
from src.services.payment_settings import (
    get_active_payment_configuration,
    require_active_payment_configuration,
)
from src.services.supabase_client import (
    get_payment_events,
    insert_payment_event,
    generate_record_id,
    now_iso,
)
from src.utils.errors import AuthorizationError, ConflictError, ValidationError
from src.utils.logging import get_structured_logger, mask_user_id
from src.utils.settings import MarketplaceConfig

logger = get_structured_logger(__name__)


async def start_payment(
    submission_id: str,
    amount_minor_units: Optional[int] = None,
    currency: Optional[str] = None,
    **processor_kwargs,
) -> Union[PaymentIntent, PaymentInstructions]:
    """
    Begin paying a submission's commission with the active processor.

    The amount is always the submission's commission snapshot; a client
    amount that disagrees with it is rejected.
    """
    submission = await submission_store.require_submission(submission_id)

    if not requires_payment(submission):
        raise ValidationError("Submission is free, no payment required", {"submissionId": "free"})
    if submission.payment_status == PaymentStatus.PAID:
        raise ConflictError(f"Submission {submission_id} is already paid")
    if submission.submission_status == SubmissionStatus.REJECTED:
        raise ConflictError(f"Submission {submission_id} was rejected")

    expected = to_minor_units(submission.commission_amount)
    if amount_minor_units is not None and int(amount_minor_units) != expected:
        raise ValidationError(
            "Amount does not match the commission",
            {"amount": f"expected {expected}"},
        )
    if currency and currency.lower() != MarketplaceConfig.PAYMENT_CURRENCY:
        raise ValidationError(
            "Unsupported currency",
            {"currency": f"expected {MarketplaceConfig.PAYMENT_CURRENCY}"},
        )

    config = await require_active_payment_configuration()
    processor = get_processor(config, **processor_kwargs)
    result = await processor.begin_payment(submission)
    logger.info(
        "Payment started",
        submission_id=submission_id,
        payment_method=config.payment_method.value,
        amount_minor_units=expected,
    )
    return result


def is_replay(events: list[dict], confirmation: PaymentConfirmation) -> bool:
    """Same source and reference already recorded for the submission."""
    return any(
        event.get("source") == confirmation.source.value
        and event.get("reference") == confirmation.reference
        for event in events
    )


async def confirm_payment(confirmation: PaymentConfirmation) -> Submission:
    """
    Record a payment confirmation and re-evaluate auto-approval.

    A confirmation for a rejected submission is kept in the audit trail
    flagged for refund; the lifecycle does not move. Self-reported
    confirmations mark the submission paid but leave approval to an admin.
    A replayed confirmation is not recorded twice.
    """
    submission = await submission_store.require_submission(confirmation.submission_id)
    needs_refund = submission.submission_status == SubmissionStatus.REJECTED
    already_paid = submission.payment_status == PaymentStatus.PAID

    if is_replay(await get_payment_events(submission.id), confirmation):
        logger.info(
            "Duplicate payment confirmation ignored",
            submission_id=submission.id,
            source=confirmation.source.value,
        )
    else:
        await insert_payment_event({
            "id": generate_record_id(),
            "submission_id": submission.id,
            "source": confirmation.source.value,
            "reference": confirmation.reference,
            "confirmed_by": confirmation.confirmed_by,
            "amount": str(confirmation.amount if confirmation.amount is not None else submission.commission_amount),
            "needs_refund": needs_refund,
            "created_at": now_iso(),
        })

    if needs_refund:
        logger.warning(
            "Payment received for rejected submission, flagged for refund",
            submission_id=submission.id,
            source=confirmation.source.value,
            reference=confirmation.reference,
        )
        if not already_paid:
            submission = await submission_store.set_payment_status(submission.id, PaymentStatus.PAID)
        return submission

    if not already_paid:
        await submission_store.set_payment_status(submission.id, PaymentStatus.PAID)
        logger.info(
            "Submission marked paid",
            submission_id=submission.id,
            source=confirmation.source.value,
        )

    return await handle_payment_confirmed(
        submission.id,
        allow_auto_approve=confirmation.source != PaymentSource.SELF_REPORTED,
    )


async def confirm_manual_payment(
    submission_id: str,
    source: PaymentSource,
    confirmed_by: str,
    reference: Optional[str] = None,
) -> Submission:
    """Record an admin or self-reported confirmation outside the processor."""
    if source == PaymentSource.PROCESSOR_VERIFIED:
        raise ValidationError("Processor confirmations arrive by webhook", {"source": "not manual"})
    return await confirm_payment(PaymentConfirmation(
        submission_id=submission_id,
        source=source,
        reference=reference,
        confirmed_by=confirmed_by,
    ))


async def mark_paid_by_admin(admin: AdminContext, submission_id: str, note: Optional[str] = None) -> Submission:
    """Admin "mark as paid" for manual processor modes."""
    admin = require_admin(admin)
    return await confirm_manual_payment(submission_id, PaymentSource.MANUAL_ADMIN, admin.user_id, note)


async def report_payment(owner_id: str, submission_id: str, reference: Optional[str] = None) -> Submission:
    """Owner's "I've paid" confirmation. Advisory until an admin reviews it."""
    submission = await submission_store.require_submission(submission_id)
    if not owner_id or submission.user_id != owner_id:
        logger.warning(
            "Payment report from non-owner refused",
            submission_id=submission_id,
            user_id=mask_user_id(owner_id or ""),
        )
        raise AuthorizationError("Only the submitter can report a payment")
    return await confirm_manual_payment(submission_id, PaymentSource.SELF_REPORTED, owner_id, reference)


async def get_payment_instructions(submission_id: str) -> PaymentInstructions:
    """Manual payment details for a submission under a non-Stripe configuration."""
    submission = await submission_store.require_submission(submission_id)
    config = await require_active_payment_configuration()
    if config.payment_method == PaymentMethod.STRIPE:
        raise ValidationError("Active payment method is Stripe", {"payment_method": "not manual"})
    return ManualProcessor(config).instructions(submission)


async def create_checkout_session(
    price_id: str,
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: Optional[dict] = None,
    **processor_kwargs,
) -> CheckoutSession:
    """Hosted Stripe Checkout for a catalog price."""
    config = await get_active_payment_configuration()
    if config is None or config.payment_method != PaymentMethod.STRIPE:
        # Secret may still come from the STRIPE_SECRET_KEY override
        config = PaymentConfiguration(payment_method=PaymentMethod.STRIPE)
    processor = StripeProcessor(config, **processor_kwargs)
    return await processor.create_checkout_session(price_id, mode, success_url, cancel_url, metadata)
