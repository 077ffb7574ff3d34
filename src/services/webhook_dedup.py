"""Stripe webhook event deduplication using the processed_webhook_events table."""

import hashlib
import json
from src.services.supabase_client import check_webhook_event_exists, insert_webhook_event
from src.utils.errors import SupabaseError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def generate_event_id(event: dict) -> str:
    """
    Deterministic event ID for deduplication.

    Uses Stripe's event id when present, otherwise a hash of the body.
    """
    if isinstance(event, dict) and event.get("id"):
        return str(event["id"])
    body_str = json.dumps(event, sort_keys=True, default=str)
    return hashlib.sha1(body_str.encode()).hexdigest()


async def is_duplicate_event(event: dict) -> bool:
    """
    Check if an event was already processed.

    A store failure is not treated as a duplicate; payment confirmation is
    itself idempotent, so reprocessing is safe.
    """
    event_id = generate_event_id(event)
    try:
        exists = await check_webhook_event_exists(event_id)
    except SupabaseError as e:
        logger.error("Error checking duplicate webhook event", event_id=event_id, error=str(e))
        return False

    if exists:
        logger.info("Duplicate webhook event detected", event_id=event_id)
    return exists


async def mark_event_processed(event: dict) -> None:
    """Remember an event once it has been handled."""
    event_id = generate_event_id(event)
    try:
        await insert_webhook_event(event_id, str(event.get("type", "")))
    except SupabaseError as e:
        logger.warning("Failed to record webhook event (non-fatal)", event_id=event_id, error=str(e))
