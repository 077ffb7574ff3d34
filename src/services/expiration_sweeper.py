"""Expiration sweeper - flips is_expired on listings past their expiration."""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from pydantic import ValidationError as PydanticValidationError
from src.models.listing import Listing
from src.services.supabase_client import get_listings, mark_listing_expired
from src.utils.errors import SupabaseError
from src.utils.logging import (
    get_structured_logger,
    log_timing,
    correlation_context,
)
from src.utils.settings import MarketplaceConfig

logger = get_structured_logger(__name__)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def load_listings(rows: list[dict]) -> list[Listing]:
    """Listings from stored rows. Rows the model rejects are logged and skipped."""
    listings = []
    for row in rows:
        try:
            listings.append(Listing.model_validate(row))
        except PydanticValidationError as e:
            logger.warning("Invalid listing row skipped", listing_id=row.get("id"), error=str(e))
    return listings


def is_past_expiration(listing: Listing, now: datetime) -> bool:
    expiration = listing.effective_expiration()
    return expiration is not None and as_utc(expiration) <= as_utc(now)


async def sweep(now: Optional[datetime] = None) -> int:
    """
    Mark every listing past its effective expiration as expired.

    Idempotent: already-expired listings are skipped by the store query and
    the conditional write. Returns the number of listings flipped.
    """
    now = now or datetime.now(timezone.utc)
    expired = 0

    with log_timing("expiration_sweep", logger=logger):
        rows = await get_listings(include_expired=False)
        for listing in load_listings(rows):
            if not is_past_expiration(listing, now):
                continue
            if await mark_listing_expired(listing.id):
                expired += 1
                logger.info(
                    "Listing expired",
                    listing_id=listing.id,
                    expired_at=as_utc(listing.effective_expiration()).isoformat(),
                )

    logger.info("Expiration sweep finished", listings_checked=len(rows), listings_expired=expired)
    return expired


class ExpirationSweeper:
    """Run sweep() periodically until stopped."""

    def __init__(self, interval_seconds: int = MarketplaceConfig.EXPIRATION_SWEEP_INTERVAL_SECONDS):
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        logger.info("ExpirationSweeper initialized", sweep_interval_seconds=interval_seconds)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("ExpirationSweeper stopped")

    async def _run(self) -> None:
        while True:
            with correlation_context():
                try:
                    await sweep()
                except SupabaseError as e:
                    # Next tick retries
                    logger.error("Expiration sweep failed", error=str(e))
            await asyncio.sleep(self.interval_seconds)
