"""Tests for the Stripe webhook endpoint."""

import json
import pytest
from http.server import BaseHTTPRequestHandler
from api.stripe.webhook import handler
from tests.utils.assertions import assert_single_listing_for
from tests.utils.factories import create_submission_row
from tests.utils.helpers import call_handler, create_stripe_event, generate_stripe_signature

SECRET = "whsec_endpoint_test"


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
    return SECRET


def deliver(event: dict, signature: str = None):
    payload = json.dumps(event)
    headers = {"Stripe-Signature": signature if signature is not None else generate_stripe_signature(SECRET, payload)}
    return call_handler(handler, "POST", "/api/stripe/webhook", payload, headers)


@pytest.mark.unit
def test_webhook_handler_class():
    assert issubclass(handler, BaseHTTPRequestHandler)


@pytest.mark.unit
def test_invalid_signature_rejected(auto_approve_policy, webhook_secret):
    fake = auto_approve_policy
    row = create_submission_row()
    fake.seed("property_submissions", row)

    status, body = deliver(create_stripe_event(submission_id=row["id"]), signature="t=1,v1=forged")

    assert status == 400
    assert body == {"error": "invalid signature"}
    assert fake.rows("property_submissions")[0]["payment_status"] == "unpaid"


@pytest.mark.integration
def test_payment_succeeded_publishes_once(auto_approve_policy, webhook_secret):
    """Test a verified payment auto-approves, and a replay changes nothing."""
    fake = auto_approve_policy
    row = create_submission_row()
    fake.seed("property_submissions", row)
    event = create_stripe_event(submission_id=row["id"], event_id="evt_live_1")

    status, body = deliver(event)
    replay_status, _ = deliver(event)

    assert status == 200
    assert body == {"received": True}
    assert replay_status == 200
    stored = fake.rows("property_submissions")[0]
    assert stored["submission_status"] == "approved"
    assert stored["payment_status"] == "paid"
    assert_single_listing_for(fake.rows("listings"), row["id"])
    assert len(fake.rows("payment_events")) == 1


@pytest.mark.unit
def test_unknown_submission_acknowledged(fake_supabase, webhook_secret):
    """Test a verified payment for a missing submission is not redelivered."""
    status, body = deliver(create_stripe_event(submission_id="does-not-exist", event_id="evt_2"))

    assert status == 200
    assert body == {"received": True}
    assert fake_supabase.rows("processed_webhook_events")[0]["event_id"] == "evt_2"


@pytest.mark.unit
def test_store_failure_is_retryable(fake_supabase, webhook_secret):
    row = create_submission_row()
    fake_supabase.seed("property_submissions", row)
    fake_supabase.fail_next("property_submissions", "select")

    status, body = deliver(create_stripe_event(submission_id=row["id"], event_id="evt_4"))

    assert status == 500
    assert body == {"error": "internal server error"}
    assert fake_supabase.rows("processed_webhook_events") == []


@pytest.mark.unit
def test_get_is_health_check():
    status, body = call_handler(handler, "GET", "/api/stripe/webhook")

    assert status == 200
    assert body["endpoint"] == "stripe/webhook"
