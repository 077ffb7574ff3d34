"""Helpers shared by the serverless HTTP handlers."""

import asyncio
import json
from typing import Any, Coroutine
from src.utils.errors import (
    AuthorizationError,
    ConflictError,
    MarketplaceError,
    NotFoundError,
    PolicyViolation,
    ProcessorError,
    ValidationError,
    WebhookVerificationError,
)

# Most specific first
ERROR_STATUS: tuple[tuple[type, int], ...] = (
    (ValidationError, 400),
    (WebhookVerificationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PolicyViolation, 422),
    (ProcessorError, 502),
)


def status_for_error(error: Exception) -> int:
    """HTTP status for an engine error; anything unexpected is a 500."""
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def error_body(error: Exception) -> dict:
    """Client-safe error payload. Internal errors never leak their message."""
    status = status_for_error(error)
    if status == 500 or not isinstance(error, MarketplaceError):
        return {"error": "internal server error"}
    body: dict[str, Any] = {"error": str(error)}
    if isinstance(error, ValidationError) and error.field_errors:
        body["fieldErrors"] = error.field_errors
    return body


def run_async(coro: Coroutine) -> Any:
    """Run a coroutine from a synchronous handler."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            raise RuntimeError("event loop is closed")
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def json_response(status: int, body: dict) -> dict:
    """Response dict for function-style (cron) handlers."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


class JsonRequestMixin:
    """JSON read/write helpers for BaseHTTPRequestHandler subclasses."""

    def read_raw_body(self) -> str:
        content_length = int(self.headers.get('Content-Length', 0))
        return self.rfile.read(content_length).decode('utf-8') if content_length > 0 else ""

    def read_json(self, raw_body: str) -> dict:
        try:
            body = json.loads(raw_body) if raw_body else {}
        except json.JSONDecodeError as e:
            raise ValidationError("Malformed JSON body", {"body": "invalid json"}) from e
        if not isinstance(body, dict):
            raise ValidationError("JSON body must be an object", {"body": "not an object"})
        return body

    def send_json(self, status: int, body: dict, correlation_id: str = None) -> None:
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        if correlation_id:
            self.send_header('X-Correlation-ID', correlation_id)
        self.end_headers()
        self.wfile.write(json.dumps(body).encode('utf-8'))
