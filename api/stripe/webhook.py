"""Stripe webhook endpoint for Vercel."""

from http.server import BaseHTTPRequestHandler
from src.services.stripe_events import handle_stripe_event
from src.services.stripe_verifier import verify_stripe_request
from src.utils.http import JsonRequestMixin, error_body, run_async, status_for_error
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


class handler(JsonRequestMixin, BaseHTTPRequestHandler):
    """Vercel serverless function handler for Stripe events."""

    def do_POST(self):
        """Verify, de-duplicate and apply a Stripe event."""
        with correlation_context() as correlation_id:
            try:
                raw_body = self.read_raw_body()
                signature = self.headers.get("Stripe-Signature") or self.headers.get("stripe-signature", "")

                if not run_async(verify_stripe_request(raw_body, signature)):
                    logger.warning("Stripe signature verification failed", has_signature=bool(signature))
                    self.send_json(400, {"error": "invalid signature"}, correlation_id)
                    return

                event = self.read_json(raw_body)
                outcome = run_async(handle_stripe_event(event))
                logger.info("Stripe webhook handled", event_type=event.get("type"), outcome=outcome)
                self.send_json(200, {"received": True}, correlation_id)

            except Exception as e:
                # Non-2xx makes Stripe redeliver the event
                status = status_for_error(e)
                logger.error("Error processing Stripe event", error=str(e), status_code=status, exc_info=status == 500)
                self.send_json(status, error_body(e), correlation_id)

    def do_GET(self):
        """Handle GET request (health check)."""
        self.send_json(200, {"status": "ok", "endpoint": "stripe/webhook"})
