"""Tests for Stripe webhook signature verification."""

import os
import time
import pytest
from src.services.stripe_verifier import (
    get_webhook_secret,
    parse_signature_header,
    should_bypass_verification,
    verify_stripe_request,
    verify_stripe_signature,
)
from src.utils.errors import WebhookVerificationError
from tests.utils.factories import create_payment_settings_row
from tests.utils.helpers import generate_stripe_signature

SECRET = "whsec_test123"
PAYLOAD = '{"id":"evt_1","type":"payment_intent.succeeded"}'


def test_verify_stripe_signature_valid():
    """Test valid signature verification."""
    header = generate_stripe_signature(SECRET, PAYLOAD)
    assert verify_stripe_signature(SECRET, PAYLOAD, header) is True


def test_verify_stripe_signature_invalid():
    header = f"t={int(time.time())},v1=deadbeef"
    assert verify_stripe_signature(SECRET, PAYLOAD, header) is False


def test_verify_stripe_signature_tampered_payload():
    header = generate_stripe_signature(SECRET, PAYLOAD)
    assert verify_stripe_signature(SECRET, PAYLOAD.replace("evt_1", "evt_2"), header) is False


def test_verify_stripe_signature_old_timestamp():
    """Test that replayed (old) timestamps are rejected."""
    header = generate_stripe_signature(SECRET, PAYLOAD, timestamp=int(time.time()) - 400)
    assert verify_stripe_signature(SECRET, PAYLOAD, header, tolerance=300) is False


def test_verify_stripe_signature_any_v1_matches():
    """Test rotation: one of several v1 signatures may match."""
    valid = generate_stripe_signature(SECRET, PAYLOAD)
    timestamp, signatures = parse_signature_header(valid)
    header = f"t={timestamp},v1=0000,v1={signatures[0]}"
    assert verify_stripe_signature(SECRET, PAYLOAD, header) is True


def test_verify_stripe_signature_missing_parts():
    assert verify_stripe_signature(SECRET, PAYLOAD, "") is False
    assert verify_stripe_signature(SECRET, PAYLOAD, "v1=abc") is False
    assert verify_stripe_signature(SECRET, PAYLOAD, "t=notanumber,v1=abc") is False
    assert verify_stripe_signature("", PAYLOAD, generate_stripe_signature(SECRET, PAYLOAD)) is False


def test_should_bypass_verification_dev(monkeypatch):
    """Test bypass in development mode."""
    monkeypatch.setenv("NODE_ENV", "development")
    assert should_bypass_verification() is True


def test_should_bypass_verification_flag(monkeypatch):
    monkeypatch.setenv("STRIPE_BYPASS_VERIFY", "true")
    assert should_bypass_verification() is True


def test_no_bypass_by_default():
    assert should_bypass_verification() is False


@pytest.mark.asyncio
async def test_webhook_secret_from_env(monkeypatch, fake_supabase):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_env\n")
    assert await get_webhook_secret() == "whsec_env"


@pytest.mark.asyncio
async def test_webhook_secret_from_settings(fake_supabase):
    fake_supabase.seed("payment_settings", create_payment_settings_row("stripe"))
    assert await get_webhook_secret() == "whsec_test123"


@pytest.mark.asyncio
async def test_webhook_secret_missing(fake_supabase):
    with pytest.raises(WebhookVerificationError):
        await get_webhook_secret()


@pytest.mark.asyncio
async def test_verify_stripe_request(monkeypatch, fake_supabase):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)
    header = generate_stripe_signature(SECRET, PAYLOAD)

    assert await verify_stripe_request(PAYLOAD, header) is True
    assert await verify_stripe_request(PAYLOAD, "t=1,v1=bad") is False


@pytest.mark.asyncio
async def test_verify_stripe_request_without_secret_fails(fake_supabase):
    header = generate_stripe_signature(SECRET, PAYLOAD)
    assert await verify_stripe_request(PAYLOAD, header) is False


@pytest.mark.asyncio
async def test_verify_stripe_request_with_bypass(monkeypatch):
    monkeypatch.setenv("NODE_ENV", "development")
    assert await verify_stripe_request("body", "invalid") is True
