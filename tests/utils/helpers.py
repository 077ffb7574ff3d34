"""Test helper functions."""

import json
import hmac
import hashlib
import time
from io import BytesIO
from typing import Any, Dict, Optional
from unittest.mock import Mock


def generate_stripe_signature(secret: str, payload: str, timestamp: Optional[int] = None) -> str:
    """Generate a valid Stripe-Signature header for testing."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(
        secret.encode('utf-8'),
        f"{timestamp}.{payload}".encode('utf-8'),
        hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def create_stripe_event(
    event_type: str = "payment_intent.succeeded",
    submission_id: str = "sub_1",
    event_id: Optional[str] = None,
    **object_fields
) -> Dict[str, Any]:
    """Create a Stripe event payload for testing."""
    obj = {
        "id": "pi_test_123",
        "object": "payment_intent" if event_type.startswith("payment_intent") else "checkout.session",
        "metadata": {"submissionId": submission_id},
    }
    obj.update(object_fields)
    return {
        "id": event_id or f"evt_{int(time.time() * 1000)}",
        "type": event_type,
        "data": {"object": obj},
    }


def call_handler(handler_class, method: str, path: str, body: str = "", headers: Optional[Dict[str, str]] = None):
    """
    Run a BaseHTTPRequestHandler subclass against an in-memory request.

    Returns (status_code, parsed_json_body).
    """
    headers = dict(headers or {})
    if body:
        headers.setdefault("Content-Length", str(len(body.encode('utf-8'))))
    head = f"{method} {path} HTTP/1.1\r\n" + "".join(f"{k}: {v}\r\n" for k, v in headers.items()) + "\r\n"
    raw = head.encode('utf-8') + body.encode('utf-8')

    h = handler_class.__new__(handler_class)
    h.rfile = BytesIO(raw)
    h.wfile = BytesIO()
    h.client_address = ("127.0.0.1", 8000)
    h.server = None
    h.raw_requestline = h.rfile.readline()
    h.parse_request()
    h.send_response = Mock()
    h.send_header = Mock()
    h.end_headers = Mock()

    getattr(h, f"do_{method}")()

    status = h.send_response.call_args[0][0]
    h.wfile.seek(0)
    return status, json.loads(h.wfile.read().decode('utf-8'))
