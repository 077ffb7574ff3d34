"""Property submission models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class ListingKind(str, Enum):
    """Listing kind values."""
    RENT = "rent"
    SALE = "sale"


class PaymentStatus(str, Enum):
    """Payment status of a submission."""
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class SubmissionStatus(str, Enum):
    """Review status of a submission."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Columns copied from a submission onto a published listing
PROPERTY_FIELD_NAMES: tuple[str, ...] = (
    "title",
    "description",
    "price",
    "property_type",
    "listing_type",
    "bedrooms",
    "bathrooms",
    "area_sqft",
    "address",
    "city",
    "state",
    "zip_code",
    "latitude",
    "longitude",
    "features",
    "images",
)


class PropertyFields(BaseModel):
    """Property attributes shared by submissions and listings."""
    title: str = Field(..., min_length=1, description="Listing title")
    description: str = Field(default="", description="Free-text description")
    price: Decimal = Field(..., ge=0, description="Asking price or monthly rent")
    property_type: str = Field(default="House", description="House, Apartment, Condo, ...")
    listing_type: ListingKind = Field(..., description="rent or sale")
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    area_sqft: Optional[int] = Field(None, ge=0, description="Living area")
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    zip_code: str = Field(default="")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    features: list[str] = Field(default_factory=list, description="Feature tags")
    images: list[str] = Field(default_factory=list, description="Image URLs")

    def property_payload(self) -> dict:
        """Property columns as a JSON-ready dict."""
        return self.model_dump(mode="json", include=set(PROPERTY_FIELD_NAMES))


class SubmissionDraft(PropertyFields):
    """Client-authored property data before pricing."""
    pass


class Submission(PropertyFields):
    """A client's request to list a property."""
    id: str = Field(..., description="Submission ID (text)")
    user_id: str = Field(..., description="Owner user ID")
    commission_percentage: Decimal = Field(..., ge=0, le=100, description="Percentage snapshot at submission time")
    commission_amount: Decimal = Field(..., ge=0, description="Fee snapshot at submission time")
    payment_status: PaymentStatus = Field(default=PaymentStatus.UNPAID)
    submission_status: SubmissionStatus = Field(default=SubmissionStatus.PENDING)
    rejection_reason: Optional[str] = None
    payment_override: bool = Field(default=False, description="Admin approved without payment")
    approval_options: Optional[dict] = Field(None, description="Admin publication settings captured at approval")
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    approved_listing_id: Optional[str] = Field(None, description="Listing materialized from this submission")

    @model_validator(mode="after")
    def check_status_invariants(self) -> "Submission":
        """Rejected submissions always carry a reason."""
        if self.submission_status == SubmissionStatus.REJECTED and not (self.rejection_reason or "").strip():
            raise ValueError("rejected submissions require a rejection_reason")
        return self

    @property
    def is_free(self) -> bool:
        return self.commission_amount == 0
