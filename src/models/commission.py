"""Commission policy models."""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from src.models.submission import ListingKind


class CommissionRate(BaseModel):
    """One commission_settings row (one per listing kind)."""
    id: Optional[str] = None
    listing_type: ListingKind
    commission_percentage: Decimal = Field(..., ge=0, le=100)
    auto_approve_paid: bool = False
    updated_at: Optional[str] = None


class CommissionPolicy(BaseModel):
    """Global commission configuration."""
    rent_percentage: Decimal = Field(..., ge=0, le=100)
    sale_percentage: Decimal = Field(..., ge=0, le=100)
    auto_approve_paid: bool = False

    def percentage_for(self, kind: ListingKind) -> Decimal:
        if ListingKind(kind) == ListingKind.RENT:
            return self.rent_percentage
        return self.sale_percentage
