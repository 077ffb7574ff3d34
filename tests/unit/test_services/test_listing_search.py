"""Tests for public browse/search and admin-authored listings."""

import pytest
from datetime import datetime, timedelta, timezone
from src.models.listing import ExpirationSettings, ListingStatus
from src.models.submission import ListingKind
from src.services.listing_search import browse_listings, create_listing_directly, update_listing
from src.utils.errors import AuthorizationError, NotFoundError, ValidationError
from tests.utils.factories import create_draft_data, create_listing_row

T = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)
NOW = T + timedelta(days=1)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_browse_orders_featured_then_newest(fake_supabase):
    old = create_listing_row(created_at=T - timedelta(days=3))
    new = create_listing_row(created_at=T)
    featured = create_listing_row(created_at=T - timedelta(days=10), featured=True)
    fake_supabase.seed("listings", old, new, featured)

    result = await browse_listings(now=NOW)

    assert [listing.id for listing in result] == [featured["id"], new["id"], old["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_browse_hides_unavailable_and_expired(fake_supabase):
    visible = create_listing_row(created_at=T)
    sold = create_listing_row(created_at=T, status="sold")
    flagged = create_listing_row(created_at=T, is_expired=True)
    lapsed = create_listing_row(created_at=T - timedelta(days=10), auto_expire_days=5)
    fake_supabase.seed("listings", visible, sold, flagged, lapsed)

    result = await browse_listings(now=NOW)

    assert [listing.id for listing in result] == [visible["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_browse_skips_invalid_rows(fake_supabase):
    broken = create_listing_row(created_at=T, title="")
    visible = create_listing_row(created_at=T)
    fake_supabase.seed("listings", broken, visible)

    result = await browse_listings(now=NOW)

    assert [listing.id for listing in result] == [visible["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_browse_by_kind(fake_supabase):
    rent = create_listing_row(created_at=T, listing_type="rent")
    sale = create_listing_row(created_at=T, listing_type="sale")
    fake_supabase.seed("listings", rent, sale)

    result = await browse_listings(kind=ListingKind.RENT, now=NOW)

    assert [listing.id for listing in result] == [rent["id"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_browse_query_is_case_insensitive(fake_supabase):
    milan = create_listing_row(created_at=T, city="Milan", title="Loft", property_type="Apartment", address="1 Via Roma", state="MI")
    rome = create_listing_row(created_at=T, city="Rome", title="Villa by the sea", property_type="House", address="2 Via Appia", state="RM")
    fake_supabase.seed("listings", milan, rome)

    assert [l.id for l in await browse_listings(query="milan", now=NOW)] == [milan["id"]]
    assert [l.id for l in await browse_listings(query="VILLA", now=NOW)] == [rome["id"]]
    assert len(await browse_listings(query="  ", now=NOW)) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_listing_directly(fake_supabase, admin):
    listing = await create_listing_directly(
        admin,
        create_draft_data(listing_type="rent", price="1200"),
        featured=True,
        expiration=ExpirationSettings(auto_expire_days=60),
    )

    row = fake_supabase.rows("listings")[0]
    assert row["id"] == listing.id
    assert row["source_submission_id"] is None
    assert row["created_by"] == "admin-1"
    assert listing.featured is True
    assert listing.auto_expire_days == 60
    assert fake_supabase.rows("property_submissions") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_listing_directly_requires_admin(fake_supabase):
    with pytest.raises(AuthorizationError):
        await create_listing_directly(None, create_draft_data())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_listing_directly_validates(fake_supabase, admin):
    with pytest.raises(ValidationError) as exc_info:
        await create_listing_directly(admin, create_draft_data(title=""))

    assert "title" in exc_info.value.field_errors


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_listing(fake_supabase, admin):
    listing = create_listing_row(created_at=T)
    fake_supabase.seed("listings", listing)

    updated = await update_listing(admin, listing["id"], {"status": "sold", "featured": True, "price": "250000"})

    assert updated.status == ListingStatus.SOLD
    assert updated.featured is True
    row = fake_supabase.rows("listings")[0]
    assert row["price"] == "250000"
    assert row["updated_at"] is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_listing_rejects_unknown_fields(fake_supabase, admin):
    listing = create_listing_row(created_at=T)
    fake_supabase.seed("listings", listing)

    with pytest.raises(ValidationError) as exc_info:
        await update_listing(admin, listing["id"], {"source_submission_id": "sub_x"})

    assert "source_submission_id" in exc_info.value.field_errors


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_listing_invalid_value(fake_supabase, admin):
    listing = create_listing_row(created_at=T)
    fake_supabase.seed("listings", listing)

    with pytest.raises(ValidationError):
        await update_listing(admin, listing["id"], {"status": "demolished"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_missing_listing(fake_supabase, admin):
    with pytest.raises(NotFoundError):
        await update_listing(admin, "missing", {"featured": True})
