"""Error handling utilities."""

from typing import Optional


class MarketplaceError(Exception):
    """Base exception for the marketplace backend."""
    pass


class ValidationError(MarketplaceError):
    """Malformed input rejected before any state mutation."""

    def __init__(self, message: str, field_errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class PolicyViolation(MarketplaceError):
    """Approval attempted without satisfying the payment gate."""
    pass


class ConflictError(MarketplaceError):
    """Conditional status write lost a race (submission already processed)."""
    pass


class PublisherFailure(MarketplaceError):
    """Listing creation and link-back write did not both complete."""

    def __init__(self, message: str, submission_id: str, listing_id: Optional[str] = None):
        super().__init__(message)
        self.submission_id = submission_id
        self.listing_id = listing_id


class ProcessorError(MarketplaceError):
    """Payment processor call failed or timed out. Never treated as paid."""
    pass


class AuthorizationError(MarketplaceError):
    """Admin capability missing for a privileged action."""
    pass


class NotFoundError(MarketplaceError):
    """Requested record does not exist."""
    pass


class WebhookVerificationError(MarketplaceError):
    """Webhook signature verification failed."""
    pass


class SupabaseError(MarketplaceError):
    """Supabase operation error."""
    pass
