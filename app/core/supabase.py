"""
Supabase Clients
Service-role client for storage, anon client for verifying user tokens.
"""

from typing import Optional

from supabase import create_client, Client

from app.core.config import settings

_service_client: Optional[Client] = None
_anon_client: Optional[Client] = None


def get_supabase() -> Client:
    """Get or create the Supabase client using the service role key."""
    global _service_client
    if _service_client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _service_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
        )
    return _service_client


def get_supabase_anon() -> Client:
    """Get or create the Supabase client using the anon key."""
    global _anon_client
    if _anon_client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_ANON_KEY must be set"
            )
        _anon_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
    return _anon_client
