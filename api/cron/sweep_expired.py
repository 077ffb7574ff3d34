"""Expiration sweep endpoint (called via Vercel cron)."""

from src.services.expiration_sweeper import sweep
from src.utils.http import json_response, run_async
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


def handler(request):
    """Flip is_expired on every listing past its expiration."""
    with correlation_context():
        try:
            expired = run_async(sweep())
            return json_response(200, {"ok": True, "expired": expired})
        except Exception as e:
            logger.error("Error sweeping expired listings", error=str(e), exc_info=True)
            return json_response(500, {"error": str(e)})
