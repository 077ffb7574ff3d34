"""Stripe checkout session endpoint."""

from http.server import BaseHTTPRequestHandler
from src.services.payments import create_checkout_session
from src.utils.http import JsonRequestMixin, error_body, run_async, status_for_error
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


class handler(JsonRequestMixin, BaseHTTPRequestHandler):
    """POST {priceId, mode, successUrl, cancelUrl} -> {sessionId, url}."""

    def do_POST(self):
        incoming_id = self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER)
        with correlation_context(incoming_id) as correlation_id:
            try:
                body = self.read_json(self.read_raw_body())
                session = run_async(create_checkout_session(
                    price_id=body.get("priceId", ""),
                    mode=body.get("mode", ""),
                    success_url=body.get("successUrl", ""),
                    cancel_url=body.get("cancelUrl", ""),
                    metadata=body.get("metadata") or None,
                ))
                self.send_json(200, {"sessionId": session.session_id, "url": session.url}, correlation_id)

            except Exception as e:
                status = status_for_error(e)
                if status == 500:
                    logger.error("Checkout session failed", error=str(e), exc_info=True)
                else:
                    logger.warning("Checkout session refused", error=str(e), status_code=status)
                self.send_json(status, error_body(e), correlation_id)
