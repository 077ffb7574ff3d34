"""Listing publisher - materializes an approved submission as a public listing."""

from typing import Optional
from src.models.admin import ApprovalOptions
from src.models.listing import ListingStatus
from src.models.submission import Submission, SubmissionStatus
from src.services.submission_store import link_listing
from src.services.supabase_client import (
    create_listing,
    get_listing_by_source_submission,
    generate_record_id,
    now_iso,
)
from src.utils.errors import PolicyViolation, PublisherFailure, SupabaseError, ConflictError
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)


def build_listing_row(submission: Submission, options: ApprovalOptions) -> dict:
    """Listing row copied from the submission's property fields."""
    expiration = options.expiration
    row = submission.property_payload()
    row.update({
        "id": generate_record_id(),
        "status": ListingStatus.AVAILABLE.value,
        "featured": options.featured,
        "is_expired": False,
        "expires_at": expiration.expires_at.isoformat() if expiration.expires_at else None,
        "auto_expire_days": expiration.auto_expire_days,
        "source_submission_id": submission.id,
        "created_by": submission.user_id,
        "created_at": now_iso(),
    })
    return row


async def _create_listing(submission: Submission, options: ApprovalOptions) -> str:
    """Insert the listing, or adopt the one a concurrent publish inserted first."""
    try:
        listing = await create_listing(build_listing_row(submission, options))
    except SupabaseError:
        # Unique on source_submission_id, a lost race leaves the winner's row
        winner = await get_listing_by_source_submission(submission.id)
        if winner is None:
            raise
        logger.info(
            "Concurrent publish already created the listing",
            submission_id=submission.id,
            listing_id=winner["id"],
        )
        return winner["id"]

    logger.info(
        "Listing created from submission",
        submission_id=submission.id,
        listing_id=listing["id"],
        featured=options.featured,
    )
    return listing["id"]


async def publish(submission: Submission, options: Optional[ApprovalOptions] = None) -> str:
    """
    Publish an approved submission and return the listing ID.

    Idempotent per submission: an existing link, or a listing already created
    from this submission by an earlier attempt, is reused. The listing row is
    written before approved_listing_id so the link never points at nothing.
    """
    if submission.submission_status != SubmissionStatus.APPROVED:
        raise PolicyViolation(f"Submission {submission.id} is not approved")

    if submission.approved_listing_id:
        logger.info(
            "Submission already published",
            submission_id=submission.id,
            listing_id=submission.approved_listing_id,
        )
        return submission.approved_listing_id

    if options is None:
        options = ApprovalOptions.model_validate(submission.approval_options or {})

    with log_timing("publish_listing", logger=logger, submission_id=submission.id):
        try:
            existing = await get_listing_by_source_submission(submission.id)
            if existing:
                listing_id = existing["id"]
                logger.info(
                    "Reusing listing created by an earlier publish attempt",
                    submission_id=submission.id,
                    listing_id=listing_id,
                )
            else:
                listing_id = await _create_listing(submission, options)
        except SupabaseError as e:
            logger.error(
                "Listing creation failed, submission left unlinked",
                submission_id=submission.id,
                error=str(e),
            )
            raise PublisherFailure(str(e), submission_id=submission.id) from e

        try:
            await link_listing(submission.id, listing_id)
        except (SupabaseError, ConflictError) as e:
            logger.error(
                "Listing created but link-back failed",
                submission_id=submission.id,
                listing_id=listing_id,
                error=str(e),
            )
            raise PublisherFailure(str(e), submission_id=submission.id, listing_id=listing_id) from e

    return listing_id
