"""Public listing browse/search and admin-authored listing management."""

from datetime import datetime, timezone
from typing import Any, Optional, Union
from pydantic import ValidationError as PydanticValidationError
from src.models.admin import AdminContext
from src.models.listing import ExpirationSettings, Listing, ListingStatus
from src.models.submission import ListingKind, PropertyFields, PROPERTY_FIELD_NAMES
from src.services.admin_users import require_admin
from src.services.expiration_sweeper import is_past_expiration, load_listings
from src.services.supabase_client import (
    create_listing,
    get_listing_by_id,
    get_listings,
    generate_record_id,
    now_iso,
    update_listing as store_update_listing,
)
from src.utils.errors import NotFoundError, ValidationError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

SEARCH_FIELDS = ("title", "city", "state", "property_type", "address")

EDITABLE_FIELDS = set(PROPERTY_FIELD_NAMES) | {
    "status",
    "featured",
    "expires_at",
    "auto_expire_days",
    "is_expired",
}


def matches_query(listing: Listing, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in (getattr(listing, name) or "").lower() for name in SEARCH_FIELDS)


async def browse_listings(
    kind: Optional[ListingKind] = None,
    query: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Listing]:
    """
    Publicly visible listings, featured first then newest first.

    Listings past their expiration are hidden even before the sweeper
    flips is_expired.
    """
    now = now or datetime.now(timezone.utc)
    rows = await get_listings(
        status=ListingStatus.AVAILABLE.value,
        listing_type=ListingKind(kind).value if kind else None,
        include_expired=False,
    )
    listings = load_listings(rows)
    return [
        listing for listing in listings
        if not is_past_expiration(listing, now) and (not query or matches_query(listing, query))
    ]


async def create_listing_directly(
    admin: AdminContext,
    fields: Union[PropertyFields, dict[str, Any]],
    featured: bool = False,
    expiration: Optional[ExpirationSettings] = None,
) -> Listing:
    """Admin-authored listing, created without a submission."""
    admin = require_admin(admin)
    if not isinstance(fields, PropertyFields):
        try:
            fields = PropertyFields.model_validate(fields)
        except PydanticValidationError as e:
            field_errors = {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}
            raise ValidationError("Invalid listing", field_errors) from e

    expiration = expiration or ExpirationSettings()
    row = fields.property_payload()
    row.update({
        "id": generate_record_id(),
        "status": ListingStatus.AVAILABLE.value,
        "featured": featured,
        "is_expired": False,
        "expires_at": expiration.expires_at.isoformat() if expiration.expires_at else None,
        "auto_expire_days": expiration.auto_expire_days,
        "source_submission_id": None,
        "created_by": admin.user_id,
        "created_at": now_iso(),
    })
    listing = Listing.model_validate(await create_listing(row))
    logger.info(
        "Listing created by admin",
        listing_id=listing.id,
        admin_id=mask_user_id(admin.user_id),
        featured=featured,
    )
    return listing


async def update_listing(admin: AdminContext, listing_id: str, updates: dict[str, Any]) -> Listing:
    """Admin edit of a listing's property fields, status, featuring or expiration."""
    admin = require_admin(admin)
    unknown = sorted(set(updates) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Fields cannot be edited",
            {name: "not editable" for name in unknown},
        )

    current = await get_listing_by_id(listing_id)
    if current is None:
        raise NotFoundError(f"Listing not found: {listing_id}")

    try:
        merged = Listing.model_validate({**current, **updates})
    except PydanticValidationError as e:
        field_errors = {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}
        raise ValidationError("Invalid listing update", field_errors) from e

    row = merged.model_dump(mode="json", include=set(updates))
    row["updated_at"] = now_iso()
    listing = Listing.model_validate(await store_update_listing(listing_id, row))
    logger.info(
        "Listing updated by admin",
        listing_id=listing_id,
        admin_id=mask_user_id(admin.user_id),
        fields=sorted(updates),
    )
    return listing
