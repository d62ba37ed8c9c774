import logging
from typing import Optional

from supabase import create_client, Client

from wingside.core.settings import settings

logger = logging.getLogger(__name__)

# Service Role client: the API does its own role checks (profiles.role),
# so every query here bypasses RLS.
_client: Optional[Client] = None


def get_client() -> Client:
    """Create or return the cached Supabase client"""
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        logger.info("✅ Supabase client initialized")
    return _client


def set_client(client) -> None:
    """Swap the client (tests inject an in-memory fake here)"""
    global _client
    _client = client


def first_row(response) -> Optional[dict]:
    """Return the first row of a query response, or None"""
    data = getattr(response, "data", None) or []
    return data[0] if data else None
