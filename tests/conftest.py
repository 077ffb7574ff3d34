"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import Mock
from datetime import datetime, timezone
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("PAYMENT_CURRENCY", "eur")
os.environ.setdefault("COMMISSION_MINIMUM_FEE", "0.50")
os.environ.setdefault("STRIPE_API_BASE", "https://api.stripe.test/v1")

from tests.utils.fake_supabase import FakeSupabase
from tests.utils.factories import create_commission_rows


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for testing."""
    client = Mock()
    client.table = Mock(return_value=Mock())
    return client


@pytest.fixture
def fake_supabase(monkeypatch):
    """In-memory Supabase installed as the client singleton."""
    fake = FakeSupabase()
    monkeypatch.setattr("src.services.supabase_client._client", fake)
    return fake


@pytest.fixture
def admin():
    """Resolved administrator capability."""
    from src.models.admin import AdminContext

    return AdminContext(user_id="admin-1", verified_at=datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def auto_approve_policy(fake_supabase):
    """Commission policy rent 10% / sale 3% with auto-approval of paid submissions."""
    fake_supabase.seed("commission_settings", *create_commission_rows(auto_approve_paid=True))
    return fake_supabase


@pytest.fixture
def manual_review_policy(fake_supabase):
    """Commission policy rent 10% / sale 3%, paid submissions still need an admin."""
    fake_supabase.seed("commission_settings", *create_commission_rows(auto_approve_paid=False))
    return fake_supabase


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture(autouse=True)
def stripe_env(monkeypatch):
    """Keep processor overrides out of tests unless a test sets them."""
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("STRIPE_BYPASS_VERIFY", raising=False)
    monkeypatch.delenv("NODE_ENV", raising=False)
