"""Reconciliation endpoint (called via Vercel cron)."""

from src.services.lifecycle import reconcile_unlinked_submissions
from src.utils.http import json_response, run_async
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


def handler(request):
    """Link approved submissions whose publication did not complete."""
    with correlation_context():
        try:
            linked = run_async(reconcile_unlinked_submissions())
            return json_response(200, {"ok": True, "linked": linked})
        except Exception as e:
            logger.error("Error reconciling submissions", error=str(e), exc_info=True)
            return json_response(500, {"error": str(e)})
