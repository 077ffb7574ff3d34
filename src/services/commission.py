"""Commission calculator and commission policy management."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from src.models.commission import CommissionPolicy, CommissionRate
from src.models.submission import ListingKind
from src.services.supabase_client import get_commission_settings, upsert_commission_setting, now_iso
from src.utils.errors import ValidationError
from src.utils.logging import get_structured_logger
from src.utils.settings import MarketplaceConfig

logger = get_structured_logger(__name__)

CENT = Decimal("0.01")


def compute_commission(
    price: Decimal,
    listing_kind: ListingKind,
    policy: CommissionPolicy,
    minimum_fee: Optional[Decimal] = None,
) -> Decimal:
    """
    Fee for publishing a listing.

    fee = price * percentage / 100, rounded to cents. A positive fee below the
    processor minimum is raised to the minimum; a zero fee stays zero and
    marks the listing as free.
    """
    floor = MarketplaceConfig.COMMISSION_MINIMUM_FEE if minimum_fee is None else Decimal(minimum_fee)
    percentage = policy.percentage_for(listing_kind)
    fee = (Decimal(price) * percentage / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)

    if percentage == 0:
        return Decimal("0.00")
    if fee < floor:
        # Sub-cent fees round to 0.00 but are still chargeable
        return floor.quantize(CENT)
    return fee


def default_policy() -> CommissionPolicy:
    return CommissionPolicy(
        rent_percentage=MarketplaceConfig.COMMISSION_DEFAULT_RENT_PERCENTAGE,
        sale_percentage=MarketplaceConfig.COMMISSION_DEFAULT_SALE_PERCENTAGE,
        auto_approve_paid=False,
    )


async def get_commission_policy() -> CommissionPolicy:
    """Load the active commission policy, falling back to defaults per kind."""
    policy = default_policy()
    rows = await get_commission_settings()

    values = policy.model_dump()
    for row in rows:
        rate = CommissionRate.model_validate(row)
        if rate.listing_type == ListingKind.RENT:
            values["rent_percentage"] = rate.commission_percentage
        else:
            values["sale_percentage"] = rate.commission_percentage
        values["auto_approve_paid"] = rate.auto_approve_paid

    return CommissionPolicy.model_validate(values)


async def save_commission_policy(
    rent_percentage: Decimal,
    sale_percentage: Decimal,
    auto_approve_paid: bool,
) -> CommissionPolicy:
    """Upsert one commission_settings row per listing kind."""
    field_errors = {}
    for name, value in (("rent_percentage", rent_percentage), ("sale_percentage", sale_percentage)):
        try:
            number = Decimal(str(value))
        except ArithmeticError:
            field_errors[name] = "must be a number"
            continue
        if not number.is_finite() or number < 0 or number > 100:
            field_errors[name] = "must be between 0 and 100"
    if field_errors:
        raise ValidationError("Invalid commission settings", field_errors)

    for kind, percentage in ((ListingKind.RENT, rent_percentage), (ListingKind.SALE, sale_percentage)):
        await upsert_commission_setting({
            "listing_type": kind.value,
            "commission_percentage": str(Decimal(str(percentage))),
            "auto_approve_paid": auto_approve_paid,
            "updated_at": now_iso(),
        })

    policy = CommissionPolicy(
        rent_percentage=Decimal(str(rent_percentage)),
        sale_percentage=Decimal(str(sale_percentage)),
        auto_approve_paid=auto_approve_paid,
    )
    logger.info(
        "Commission policy saved",
        rent_percentage=str(policy.rent_percentage),
        sale_percentage=str(policy.sale_percentage),
        auto_approve_paid=auto_approve_paid,
    )
    return policy
