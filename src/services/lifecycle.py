"""
Submission lifecycle state machine.

    (none) -> pending     submission created, payment required
    (none) -> approved    submission created free (zero commission)
    pending -> approved   admin approval, or auto-approval after payment
    pending -> rejected   admin rejection with a reason
    approved -> rejected  only when an admin deletes the published listing

approved and rejected are terminal otherwise. Every move into approved
publishes the listing exactly once; status writes are compare-and-swap on
the prior status so concurrent approvals cannot publish twice.
"""

from typing import Any, Optional, Union
from pydantic import ValidationError as PydanticValidationError
from src.models.admin import AdminContext, ApprovalOptions
from src.models.submission import (
    Submission,
    SubmissionDraft,
    SubmissionStatus,
    PaymentStatus,
)
from src.services import submission_store
from src.services.admin_users import require_admin
from src.services.commission import compute_commission, get_commission_policy
from src.services.listing_publisher import publish
from src.services.payment_gate import can_approve, ensure_can_approve, requires_payment
from src.services.supabase_client import delete_listing, get_listing_by_id, now_iso
from src.utils.errors import ConflictError, NotFoundError, PublisherFailure, ValidationError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

DELETED_BY_ADMIN_REASON = "Property deleted by admin"


def parse_draft(data: Union[SubmissionDraft, dict[str, Any]]) -> SubmissionDraft:
    """Validate client input into a SubmissionDraft, mapping errors per field."""
    if isinstance(data, SubmissionDraft):
        return data
    try:
        return SubmissionDraft.model_validate(data)
    except PydanticValidationError as e:
        field_errors = {
            ".".join(str(part) for part in err["loc"]) or "__root__": err["msg"]
            for err in e.errors()
        }
        raise ValidationError("Invalid submission", field_errors) from e


async def _publish_quietly(submission: Submission, options: Optional[ApprovalOptions] = None) -> Submission:
    """Publish and return the fresh record; failures are left for reconciliation."""
    try:
        await publish(submission, options)
    except PublisherFailure as e:
        logger.error(
            "Publication deferred to reconciliation",
            submission_id=e.submission_id,
            listing_id=e.listing_id,
            error=str(e),
        )
    return await submission_store.require_submission(submission.id)


async def submit_property(owner_id: str, data: Union[SubmissionDraft, dict[str, Any]]) -> Submission:
    """
    Price and store a client submission.

    Free submissions are created approved and published immediately; every
    other submission starts pending and unpaid. The commission is a snapshot
    and is never recomputed afterwards.
    """
    if not owner_id:
        raise ValidationError("Must be signed in to submit a property", {"user_id": "required"})

    draft = parse_draft(data)
    policy = await get_commission_policy()
    percentage = policy.percentage_for(draft.listing_type)
    amount = compute_commission(draft.price, draft.listing_type, policy)

    free = amount == 0
    row = draft.property_payload()
    row.update({
        "user_id": owner_id,
        "commission_percentage": str(percentage),
        "commission_amount": str(amount),
        "payment_status": (PaymentStatus.PAID if free else PaymentStatus.UNPAID).value,
        "submission_status": (SubmissionStatus.APPROVED if free else SubmissionStatus.PENDING).value,
    })

    submission = await submission_store.insert_submission(row)
    logger.info(
        "Property submitted",
        submission_id=submission.id,
        user_id=mask_user_id(owner_id),
        listing_type=draft.listing_type.value,
        commission_percentage=str(percentage),
        commission_amount=str(amount),
        free=free,
    )

    if submission.submission_status == SubmissionStatus.APPROVED:
        return await _publish_quietly(submission, ApprovalOptions())
    return submission


async def approve_submission(
    admin: AdminContext,
    submission_id: str,
    options: Optional[ApprovalOptions] = None,
) -> Submission:
    """
    Admin approval of a pending submission.

    Raises PolicyViolation (no state change) when the payment gate is closed
    and no override was given; ConflictError when the submission was already
    rejected or another approval won the race. Approving an already-approved
    submission only retries a missing publication.
    """
    admin = require_admin(admin)
    options = options or ApprovalOptions()
    submission = await submission_store.require_submission(submission_id)

    if submission.submission_status == SubmissionStatus.APPROVED:
        if submission.approved_listing_id:
            logger.info("Approval is a no-op, already published", submission_id=submission_id)
            return submission
        return await _publish_quietly(submission)

    if submission.submission_status == SubmissionStatus.REJECTED:
        raise ConflictError(f"Submission {submission_id} was already rejected")

    ensure_can_approve(submission, options.override_payment)

    # Record the override only when it actually bypassed an unpaid fee
    overridden = (
        options.override_payment
        and requires_payment(submission)
        and submission.payment_status != PaymentStatus.PAID
    )

    approved = await submission_store.transition_status(
        submission_id,
        SubmissionStatus.PENDING,
        {
            "submission_status": SubmissionStatus.APPROVED.value,
            "reviewed_at": now_iso(),
            "reviewed_by": admin.user_id,
            "payment_override": overridden,
            "approval_options": options.model_dump(mode="json"),
        },
    )
    logger.info(
        "Submission approved by admin",
        submission_id=submission_id,
        admin_id=mask_user_id(admin.user_id),
        payment_override=overridden,
        featured=options.featured,
    )
    return await _publish_quietly(approved, options)


async def reject_submission(admin: AdminContext, submission_id: str, reason: str) -> Submission:
    """Admin rejection of a pending submission. Requires a non-empty reason."""
    admin = require_admin(admin)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required", {"rejection_reason": "required"})

    submission = await submission_store.require_submission(submission_id)
    if submission.submission_status != SubmissionStatus.PENDING:
        raise ConflictError(
            f"Submission {submission_id} is already {submission.submission_status.value}"
        )

    rejected = await submission_store.transition_status(
        submission_id,
        SubmissionStatus.PENDING,
        {
            "submission_status": SubmissionStatus.REJECTED.value,
            "rejection_reason": reason,
            "reviewed_at": now_iso(),
            "reviewed_by": admin.user_id,
        },
    )
    logger.info(
        "Submission rejected",
        submission_id=submission_id,
        admin_id=mask_user_id(admin.user_id),
    )
    return rejected


async def handle_payment_confirmed(submission_id: str, allow_auto_approve: bool = True) -> Submission:
    """
    Re-run auto-approval after a payment confirmation.

    Only a pending, paid submission under an auto_approve_paid policy moves;
    rejected stays rejected and a replayed confirmation is a no-op.
    """
    submission = await submission_store.require_submission(submission_id)

    if submission.submission_status == SubmissionStatus.REJECTED:
        logger.warning("Payment confirmed for rejected submission, lifecycle unchanged", submission_id=submission_id)
        return submission

    if submission.submission_status == SubmissionStatus.APPROVED:
        if submission.approved_listing_id:
            return submission
        return await _publish_quietly(submission)

    if not allow_auto_approve or not can_approve(submission):
        return submission

    policy = await get_commission_policy()
    if not policy.auto_approve_paid:
        logger.info("Payment recorded, awaiting admin review", submission_id=submission_id)
        return submission

    try:
        approved = await submission_store.transition_status(
            submission_id,
            SubmissionStatus.PENDING,
            {
                "submission_status": SubmissionStatus.APPROVED.value,
                "approval_options": ApprovalOptions().model_dump(mode="json"),
            },
        )
    except ConflictError:
        # An admin decided first; their transition owns publication
        logger.info("Auto-approval lost race, no-op", submission_id=submission_id)
        return await submission_store.require_submission(submission_id)

    logger.info("Submission auto-approved after payment", submission_id=submission_id)
    return await _publish_quietly(approved, ApprovalOptions())


async def delete_published_listing(admin: AdminContext, listing_id: str) -> Optional[Submission]:
    """
    Delete a listing and retire its source submission.

    An approved source submission moves to rejected, with its listing link
    cleared, before the listing row is removed. A failure in between leaves a
    rejected submission and a live listing, and repeating the delete finishes
    the job. Admin-authored listings have no source submission and return None.
    """
    admin = require_admin(admin)
    listing = await get_listing_by_id(listing_id)
    if listing is None:
        raise NotFoundError(f"Listing not found: {listing_id}")

    submission = None
    submission_id = listing.get("source_submission_id")
    if submission_id:
        submission = await _retire_submission(admin, submission_id)

    await delete_listing(listing_id)
    logger.info(
        "Listing deleted by admin",
        listing_id=listing_id,
        submission_id=submission_id,
        admin_id=mask_user_id(admin.user_id),
    )
    return submission


async def _retire_submission(admin: AdminContext, submission_id: str) -> Optional[Submission]:
    submission = await submission_store.get_submission(submission_id)
    if submission is None or submission.submission_status != SubmissionStatus.APPROVED:
        return submission

    try:
        return await submission_store.transition_status(
            submission_id,
            SubmissionStatus.APPROVED,
            {
                "submission_status": SubmissionStatus.REJECTED.value,
                "rejection_reason": DELETED_BY_ADMIN_REASON,
                "approved_listing_id": None,
                "reviewed_at": now_iso(),
                "reviewed_by": admin.user_id,
            },
        )
    except ConflictError:
        return await submission_store.require_submission(submission_id)


async def reconcile_unlinked_submissions() -> int:
    """Retry publication for approved submissions without a listing link."""
    linked = 0
    for submission in await submission_store.list_unlinked_approved():
        try:
            await publish(submission)
            linked += 1
        except PublisherFailure as e:
            logger.error(
                "Reconciliation publish failed",
                submission_id=e.submission_id,
                listing_id=e.listing_id,
                error=str(e),
            )
    if linked:
        logger.info("Reconciled unlinked submissions", linked=linked)
    return linked
