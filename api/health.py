"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
from src.services.supabase_client import is_supabase_configured
from src.utils.http import JsonRequestMixin
from src.utils.settings import MarketplaceConfig

SERVICE_NAME = "estate-marketplace-backend"


def health_report() -> tuple[int, dict]:
    """Status code and body; 503 when the backing store is not configured."""
    supabase_ok = is_supabase_configured()
    body = {
        "status": "ok" if supabase_ok else "degraded",
        "service": SERVICE_NAME,
        "checks": {"supabase": supabase_ok},
        "paymentCurrency": MarketplaceConfig.PAYMENT_CURRENCY,
    }
    return (200 if supabase_ok else 503), body


class handler(JsonRequestMixin, BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        status, body = health_report()
        self.send_json(status, body)

    def do_POST(self):
        """Same as GET for health check."""
        self.do_GET()
