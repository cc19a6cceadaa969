"""
Supabase client factory for API requests.

get_supabase_client(access_token) returns a user-scoped client so row level
security applies. Background workers use
app.celery_app.supabase_client.get_supabase_service() instead.
"""

from supabase import Client, create_client

from app.core.config import SUPABASE_ANON_KEY, SUPABASE_URL
from app.exceptions import ConfigurationError


def get_supabase_client(access_token: str | None = None) -> Client:
    """
    Create a Supabase client.

    Args:
        access_token: The user's JWT; when given, PostgREST runs as that user.
    """
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        raise ConfigurationError("Supabase", "URL and anon key")
    client = create_client(SUPABASE_URL, SUPABASE_ANON_KEY)
    if access_token:
        client.postgrest.auth(access_token)
    return client
