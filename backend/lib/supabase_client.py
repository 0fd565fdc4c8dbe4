"""
Supabase client for the profile store
"""
from typing import Optional
from supabase import create_client, Client

from .config import get_settings

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton"""
    global _supabase_client

    if _supabase_client is None:
        settings = get_settings()
        # Service role key: the relay updates profiles on the user's behalf
        url = settings.supabase_url
        key = settings.supabase_service_key

        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment")

        _supabase_client = create_client(url, key)

    return _supabase_client
