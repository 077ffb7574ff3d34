"""Tests for the submission store."""

import pytest
from unittest.mock import MagicMock, patch
from src.models.submission import SubmissionStatus, PaymentStatus
from src.services import submission_store
from src.utils.errors import ConflictError, NotFoundError, SupabaseError
from tests.utils.factories import create_submission_row


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_fills_id_and_timestamp(fake_supabase):
    row = create_submission_row()
    del row["id"]
    del row["submitted_at"]

    submission = await submission_store.insert_submission(row)

    assert submission.id
    assert submission.submitted_at is not None
    assert fake_supabase.rows("property_submissions")[0]["id"] == submission.id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_require_submission_missing(fake_supabase):
    with pytest.raises(NotFoundError):
        await submission_store.require_submission("missing")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transition_applies_when_status_matches(fake_supabase):
    row = create_submission_row()
    fake_supabase.seed("property_submissions", row)

    updated = await submission_store.transition_status(
        row["id"], SubmissionStatus.PENDING, {"submission_status": "approved"}
    )

    assert updated.submission_status == SubmissionStatus.APPROVED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transition_conflict_when_status_moved(fake_supabase):
    """Test the losing side of a race gets ConflictError and writes nothing."""
    row = create_submission_row(submission_status="rejected", rejection_reason="Spam")
    fake_supabase.seed("property_submissions", row)

    with pytest.raises(ConflictError):
        await submission_store.transition_status(
            row["id"], SubmissionStatus.PENDING, {"submission_status": "approved"}
        )

    assert fake_supabase.rows("property_submissions")[0]["submission_status"] == "rejected"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_set_payment_status(fake_supabase):
    row = create_submission_row()
    fake_supabase.seed("property_submissions", row)

    updated = await submission_store.set_payment_status(row["id"], PaymentStatus.PAID)

    assert updated.payment_status == PaymentStatus.PAID


@pytest.mark.unit
@pytest.mark.asyncio
async def test_link_listing_once(fake_supabase):
    row = create_submission_row(submission_status="approved", payment_status="paid")
    fake_supabase.seed("property_submissions", row)

    first = await submission_store.link_listing(row["id"], "lst_1")
    again = await submission_store.link_listing(row["id"], "lst_1")

    assert first.approved_listing_id == "lst_1"
    assert again.approved_listing_id == "lst_1"
    with pytest.raises(ConflictError):
        await submission_store.link_listing(row["id"], "lst_2")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_for_owner_newest_first(fake_supabase):
    older = create_submission_row(user_id="owner-1", submitted_at="2024-12-01T10:00:00+00:00")
    newer = create_submission_row(user_id="owner-1", submitted_at="2024-12-05T10:00:00+00:00")
    other = create_submission_row(user_id="owner-2")
    fake_supabase.seed("property_submissions", older, newer, other)

    result = await submission_store.list_submissions_for_owner("owner-1")

    assert [s.id for s in result] == [newer["id"], older["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_by_status(fake_supabase):
    pending = create_submission_row()
    approved = create_submission_row(submission_status="approved", payment_status="paid")
    fake_supabase.seed("property_submissions", pending, approved)

    result = await submission_store.list_submissions(SubmissionStatus.APPROVED)

    assert [s.id for s in result] == [approved["id"]]
    assert len(await submission_store.list_submissions()) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_unlinked_approved(fake_supabase):
    unlinked = create_submission_row(submission_status="approved", payment_status="paid")
    linked = create_submission_row(submission_status="approved", payment_status="paid", approved_listing_id="lst_9")
    fake_supabase.seed("property_submissions", unlinked, linked, create_submission_row())

    result = await submission_store.list_unlinked_approved()

    assert [s.id for s in result] == [unlinked["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_errors_wrapped():
    """Test client exceptions surface as SupabaseError."""
    mock_client = MagicMock()
    mock_client.table.side_effect = Exception("connection refused")

    with patch('src.services.submission_store.SupabaseClient') as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = mock_client
        mock_client_class.return_value.__aexit__.return_value = None

        with pytest.raises(SupabaseError):
            await submission_store.get_submission("sub_1")
