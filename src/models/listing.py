"""Listing models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from src.models.submission import PropertyFields


class ListingStatus(str, Enum):
    """Listing availability status."""
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"
    RENTED = "rented"


class ExpirationSettings(BaseModel):
    """Admin-chosen expiration for a listing."""
    expires_at: Optional[datetime] = Field(None, description="Absolute expiration instant")
    auto_expire_days: Optional[int] = Field(None, gt=0, description="Days after creation")


class Listing(PropertyFields):
    """Published, publicly browsable property."""
    id: str = Field(..., description="Listing ID (text)")
    status: ListingStatus = Field(default=ListingStatus.AVAILABLE)
    featured: bool = False
    is_expired: bool = False
    expires_at: Optional[datetime] = None
    auto_expire_days: Optional[int] = Field(None, gt=0)
    source_submission_id: Optional[str] = Field(None, description="Originating submission, null for admin-authored listings")
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    def effective_expiration(self) -> Optional[datetime]:
        """
        Single instant at which the listing expires.

        expires_at wins when both are stored; auto_expire_days is the fallback.
        Returns None when the listing never expires.
        """
        if self.expires_at is not None:
            return self.expires_at
        if self.auto_expire_days is not None:
            return self.created_at + timedelta(days=self.auto_expire_days)
        return None
