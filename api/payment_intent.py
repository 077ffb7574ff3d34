"""Payment intent endpoint - starts paying a submission's commission."""

import math
from http.server import BaseHTTPRequestHandler
from typing import Optional
from src.models.payment import PaymentIntent
from src.services.payments import start_payment
from src.utils.errors import ValidationError
from src.utils.http import JsonRequestMixin, error_body, run_async, status_for_error
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


def parse_amount(value) -> Optional[int]:
    """Client amount in minor units, or None when omitted."""
    if value is None:
        return None
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or (isinstance(value, float) and not math.isfinite(value))
        or value != int(value)
    ):
        raise ValidationError("Amount must be an integer number of minor units", {"amount": "invalid"})
    return int(value)


class handler(JsonRequestMixin, BaseHTTPRequestHandler):
    """POST {submissionId, amount?, currency?} -> {clientSecret, paymentIntentId}."""

    def do_POST(self):
        incoming_id = self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER)
        with correlation_context(incoming_id) as correlation_id:
            try:
                body = self.read_json(self.read_raw_body())
                submission_id = body.get("submissionId")
                if not submission_id:
                    raise ValidationError("submissionId is required", {"submissionId": "required"})

                result = run_async(start_payment(
                    submission_id,
                    amount_minor_units=parse_amount(body.get("amount")),
                    currency=body.get("currency"),
                ))

                if isinstance(result, PaymentIntent):
                    payload = {
                        "clientSecret": result.client_secret,
                        "paymentIntentId": result.payment_intent_id,
                    }
                else:
                    payload = {"instructions": result.model_dump(mode="json")}
                self.send_json(200, payload, correlation_id)

            except Exception as e:
                status = status_for_error(e)
                if status == 500:
                    logger.error("Payment intent failed", error=str(e), exc_info=True)
                else:
                    logger.warning("Payment intent refused", error=str(e), status_code=status)
                self.send_json(status, error_body(e), correlation_id)
