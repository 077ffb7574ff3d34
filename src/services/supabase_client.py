"""Supabase client wrapper with async context manager support."""

import os
import logging
from datetime import datetime, timezone
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from ulid import ULID
from src.utils.errors import SupabaseError

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def is_supabase_configured() -> bool:
    """Both connection variables are set."""
    return bool(os.environ.get("SUPABASE_URL") and os.environ.get("SUPABASE_SERVICE_ROLE_KEY"))


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not is_supabase_configured():
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        # Service role, no end-user session in serverless handlers
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self):
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False


def generate_record_id() -> str:
    """Generate a text-based record ID (ULID format)."""
    return str(ULID())


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# Listings table operations
async def create_listing(listing_data: dict) -> dict:
    """Create a new listing."""
    async with SupabaseClient() as client:
        try:
            result = client.table("listings").insert(listing_data).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError("Failed to create listing: no data returned")
        except Exception as e:
            raise SupabaseError(f"Failed to create listing: {e}")


async def get_listing_by_id(listing_id: str) -> Optional[dict]:
    """Get listing by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table("listings").select("*").eq("id", listing_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get listing: {e}")


async def get_listing_by_source_submission(submission_id: str) -> Optional[dict]:
    """Get the listing published from a submission, if any."""
    async with SupabaseClient() as client:
        try:
            result = client.table("listings").select("*").eq("source_submission_id", submission_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get listing by submission: {e}")


async def get_listings(
    status: Optional[str] = None,
    listing_type: Optional[str] = None,
    include_expired: bool = True,
) -> list[dict]:
    """Get listings, featured first then newest first."""
    async with SupabaseClient() as client:
        try:
            query = client.table("listings").select("*")
            if status:
                query = query.eq("status", status)
            if listing_type:
                query = query.eq("listing_type", listing_type)
            if not include_expired:
                query = query.eq("is_expired", False)
            result = query.order("featured", desc=True).order("created_at", desc=True).execute()
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to get listings: {e}")


async def update_listing(listing_id: str, updates: dict) -> dict:
    """Update a listing."""
    async with SupabaseClient() as client:
        try:
            result = client.table("listings").update(updates).eq("id", listing_id).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError(f"Failed to update listing: {listing_id}")
        except Exception as e:
            raise SupabaseError(f"Failed to update listing: {e}")


async def mark_listing_expired(listing_id: str) -> bool:
    """Flip is_expired on a listing that is not expired yet.

    Returns False when another sweep already flipped it.
    """
    async with SupabaseClient() as client:
        try:
            result = (
                client.table("listings")
                .update({"is_expired": True, "updated_at": now_iso()})
                .eq("id", listing_id)
                .eq("is_expired", False)
                .execute()
            )
            return bool(result.data)
        except Exception as e:
            raise SupabaseError(f"Failed to expire listing: {e}")


async def delete_listing(listing_id: str) -> Optional[dict]:
    """Delete a listing. Returns the deleted row, or None if it was already gone."""
    async with SupabaseClient() as client:
        try:
            result = client.table("listings").delete().eq("id", listing_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to delete listing: {e}")


# Commission settings operations
async def get_commission_settings() -> list[dict]:
    """Get all commission_settings rows."""
    async with SupabaseClient() as client:
        try:
            result = client.table("commission_settings").select("*").execute()
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to get commission settings: {e}")


async def upsert_commission_setting(setting: dict) -> dict:
    """Insert or update the commission_settings row for one listing type."""
    async with SupabaseClient() as client:
        try:
            result = client.table("commission_settings").upsert(setting, on_conflict="listing_type").execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError("Failed to save commission setting: no data returned")
        except Exception as e:
            raise SupabaseError(f"Failed to save commission setting: {e}")


# Payment settings operations
async def get_active_payment_settings() -> Optional[dict]:
    """Get the active payment_settings row."""
    async with SupabaseClient() as client:
        try:
            result = client.table("payment_settings").select("*").eq("is_active", True).limit(1).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get payment settings: {e}")


async def deactivate_payment_settings() -> None:
    """Mark every payment_settings row inactive."""
    async with SupabaseClient() as client:
        try:
            client.table("payment_settings").update({"is_active": False}).eq("is_active", True).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to deactivate payment settings: {e}")


async def insert_payment_settings(settings: dict) -> dict:
    """Insert a payment_settings row."""
    async with SupabaseClient() as client:
        try:
            result = client.table("payment_settings").insert(settings).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError("Failed to save payment settings: no data returned")
        except Exception as e:
            raise SupabaseError(f"Failed to save payment settings: {e}")


async def update_payment_settings(settings_id: str, updates: dict) -> dict:
    """Update an existing payment_settings row."""
    async with SupabaseClient() as client:
        try:
            result = client.table("payment_settings").update(updates).eq("id", settings_id).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError(f"Failed to update payment settings: {settings_id}")
        except Exception as e:
            raise SupabaseError(f"Failed to update payment settings: {e}")


# Payment audit trail
async def insert_payment_event(event: dict) -> dict:
    """Record a payment confirmation in the audit trail."""
    async with SupabaseClient() as client:
        try:
            result = client.table("payment_events").insert(event).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError("Failed to record payment event: no data returned")
        except Exception as e:
            raise SupabaseError(f"Failed to record payment event: {e}")


async def get_payment_events(submission_id: str) -> list[dict]:
    """Get the payment audit trail for a submission, oldest first."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table("payment_events")
                .select("*")
                .eq("submission_id", submission_id)
                .order("created_at")
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to get payment events: {e}")


# Webhook idempotency
async def insert_webhook_event(event_id: str, event_type: str) -> None:
    """Insert a processed webhook event id."""
    async with SupabaseClient() as client:
        try:
            client.table("processed_webhook_events").insert({
                "event_id": event_id,
                "event_type": event_type,
            }).execute()
        except Exception as e:
            # Ignore duplicate key errors (idempotency)
            if "duplicate key" not in str(e).lower():
                raise SupabaseError(f"Failed to insert webhook event: {e}")


async def check_webhook_event_exists(event_id: str) -> bool:
    """Check if a webhook event was already processed."""
    async with SupabaseClient() as client:
        try:
            result = client.table("processed_webhook_events").select("event_id").eq("event_id", event_id).execute()
            return len(result.data) > 0
        except Exception as e:
            raise SupabaseError(f"Failed to check webhook event: {e}")


# Admin users
async def get_admin_user(user_id: str) -> Optional[dict]:
    """Get the admin_users row for a user."""
    async with SupabaseClient() as client:
        try:
            result = client.table("admin_users").select("user_id").eq("user_id", user_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get admin user: {e}")
