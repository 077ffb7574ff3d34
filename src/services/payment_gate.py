"""Payment gate - decides whether a submission may be published."""

from src.models.submission import Submission, PaymentStatus
from src.utils.errors import PolicyViolation


def requires_payment(submission: Submission) -> bool:
    """False only for free (zero-commission) submissions."""
    return submission.commission_amount != 0


def can_approve(submission: Submission, override: bool = False) -> bool:
    """Free, paid, or explicitly overridden by an admin."""
    return (
        not requires_payment(submission)
        or submission.payment_status == PaymentStatus.PAID
        or override
    )


def ensure_can_approve(submission: Submission, override: bool = False) -> None:
    """Raise PolicyViolation when the gate is closed."""
    if not can_approve(submission, override):
        raise PolicyViolation(
            f"Submission {submission.id} requires payment of "
            f"{submission.commission_amount} before approval"
        )
