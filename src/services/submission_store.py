"""Submission store - CRUD and conditional status writes over property_submissions."""

from typing import Optional
from src.models.submission import Submission, SubmissionStatus, PaymentStatus
from src.services.supabase_client import SupabaseClient, generate_record_id, now_iso
from src.utils.errors import ConflictError, NotFoundError, SupabaseError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

TABLE = "property_submissions"


async def insert_submission(submission_data: dict) -> Submission:
    """Persist a new submission row and return the stored record."""
    row = dict(submission_data)
    row.setdefault("id", generate_record_id())
    row.setdefault("submitted_at", now_iso())

    async with SupabaseClient() as client:
        try:
            result = client.table(TABLE).insert(row).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to create submission: {e}")

    if not result.data:
        raise SupabaseError("Failed to create submission: no data returned")

    submission = Submission.model_validate(result.data[0])
    logger.info(
        "Submission stored",
        submission_id=submission.id,
        submission_status=submission.submission_status.value,
        commission_amount=str(submission.commission_amount),
    )
    return submission


async def get_submission(submission_id: str) -> Optional[Submission]:
    """Get a submission by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table(TABLE).select("*").eq("id", submission_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to get submission: {e}")

    if result.data and len(result.data) > 0:
        return Submission.model_validate(result.data[0])
    return None


async def require_submission(submission_id: str) -> Submission:
    """Get a submission by ID or raise NotFoundError."""
    submission = await get_submission(submission_id)
    if submission is None:
        raise NotFoundError(f"Submission not found: {submission_id}")
    return submission


async def list_submissions_for_owner(user_id: str) -> list[Submission]:
    """Owner's submissions, newest first."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("submitted_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list submissions: {e}")
    return [Submission.model_validate(row) for row in result.data or []]


async def list_submissions(status: Optional[SubmissionStatus] = None) -> list[Submission]:
    """All submissions (optionally by status), newest first."""
    async with SupabaseClient() as client:
        try:
            query = client.table(TABLE).select("*")
            if status is not None:
                query = query.eq("submission_status", SubmissionStatus(status).value)
            result = query.order("submitted_at", desc=True).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to list submissions: {e}")
    return [Submission.model_validate(row) for row in result.data or []]


async def list_unlinked_approved() -> list[Submission]:
    """Approved submissions whose listing link was never written."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TABLE)
                .select("*")
                .eq("submission_status", SubmissionStatus.APPROVED.value)
                .is_("approved_listing_id", "null")
                .order("submitted_at")
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to list unlinked submissions: {e}")
    return [Submission.model_validate(row) for row in result.data or []]


async def transition_status(
    submission_id: str,
    expected: SubmissionStatus,
    updates: dict,
) -> Submission:
    """
    Compare-and-swap a status transition.

    The update only applies while submission_status still equals `expected`;
    when no row matches, the caller lost a race and ConflictError is raised.
    """
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TABLE)
                .update(updates)
                .eq("id", submission_id)
                .eq("submission_status", SubmissionStatus(expected).value)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to transition submission: {e}")

    if not result.data:
        logger.warning(
            "Conditional status write matched no row",
            submission_id=submission_id,
            expected_status=SubmissionStatus(expected).value,
            target_status=updates.get("submission_status"),
        )
        raise ConflictError(f"Submission {submission_id} is no longer {SubmissionStatus(expected).value}")

    return Submission.model_validate(result.data[0])


async def set_payment_status(submission_id: str, status: PaymentStatus) -> Submission:
    """Record a payment status change."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TABLE)
                .update({"payment_status": PaymentStatus(status).value})
                .eq("id", submission_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to update payment status: {e}")

    if not result.data:
        raise NotFoundError(f"Submission not found: {submission_id}")
    return Submission.model_validate(result.data[0])


async def link_listing(submission_id: str, listing_id: str) -> Submission:
    """
    Write approved_listing_id once.

    Guarded on the column still being null; an existing link to the same
    listing is returned unchanged, a different one is a conflict.
    """
    async with SupabaseClient() as client:
        try:
            result = (
                client.table(TABLE)
                .update({"approved_listing_id": listing_id})
                .eq("id", submission_id)
                .is_("approved_listing_id", "null")
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to link listing: {e}")

    if result.data:
        return Submission.model_validate(result.data[0])

    current = await require_submission(submission_id)
    if current.approved_listing_id == listing_id:
        return current
    raise ConflictError(
        f"Submission {submission_id} already linked to listing {current.approved_listing_id}"
    )
