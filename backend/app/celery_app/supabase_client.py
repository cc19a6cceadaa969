"""
Supabase client singleton for Celery workers.

Workers act on behalf of every user, so they use the service role key and
scope each query by user_id themselves.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL
from app.exceptions import ConfigurationError


@lru_cache(maxsize=1)
def get_supabase_service() -> Client:
    """Service role client (bypasses RLS), one per worker process."""
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigurationError("Supabase", "service role")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
