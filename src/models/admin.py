"""Admin capability and review action models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from src.models.listing import ExpirationSettings


class AdminContext(BaseModel):
    """Proof that the acting user is an administrator.

    Issued by resolve_admin() and passed explicitly into privileged
    lifecycle operations.
    """
    model_config = {"frozen": True}

    user_id: str = Field(..., min_length=1)
    verified_at: datetime


class ApprovalOptions(BaseModel):
    """Admin decisions captured at approval time."""
    override_payment: bool = Field(default=False, description="Approve without a confirmed payment")
    featured: bool = False
    expiration: ExpirationSettings = Field(default_factory=ExpirationSettings)
    note: Optional[str] = Field(None, description="Free-text audit note")
