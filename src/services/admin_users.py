"""Admin resolution - map a user ID to an admin capability."""

from datetime import datetime, timezone
from typing import Optional
from src.models.admin import AdminContext
from src.services.supabase_client import get_admin_user
from src.utils.errors import AuthorizationError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)


async def resolve_admin(user_id: Optional[str]) -> AdminContext:
    """
    Resolve a user to an AdminContext.

    Raises AuthorizationError when the user is missing or not listed in
    admin_users.
    """
    if not user_id:
        raise AuthorizationError("No authenticated user")

    row = await get_admin_user(user_id)
    if not row:
        logger.warning("Admin check failed", user_id=mask_user_id(user_id))
        raise AuthorizationError("User is not an administrator")

    logger.debug("Admin resolved", user_id=mask_user_id(user_id))
    return AdminContext(user_id=user_id, verified_at=datetime.now(timezone.utc))


def require_admin(admin: object) -> AdminContext:
    """Check that a privileged call was handed a real AdminContext."""
    if not isinstance(admin, AdminContext):
        raise AuthorizationError("Administrator capability required")
    return admin
