"""
FastAPI dependencies: authentication and per-request services.

The Supabase auth client is created on first use so that importing the app
(tests, workers) never needs Supabase credentials.
"""

import logging
from functools import lru_cache
from typing import Callable, Optional, Type, TypeVar

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client

from app.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cookie names (set by the frontend's auth flow)
COOKIE_NAME_ACCESS = "sb_access_token"
COOKIE_NAME_REFRESH = "sb_refresh_token"

ServiceT = TypeVar("ServiceT")


@lru_cache(maxsize=1)
def get_auth_client() -> Client:
    return get_supabase_client()


def _lookup_user(token: str):
    try:
        user_response = get_auth_client().auth.get_user(token)
    except Exception as e:
        logger.debug(f"Token rejected: {e}")
        return None
    if user_response and user_response.user:
        return user_response
    return None


def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """JWT from the access-token cookie, else from the Bearer header."""
    token = request.cookies.get(COOKIE_NAME_ACCESS)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return None


def verify_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
):
    """
    Verify authentication from either cookie or Authorization header.
    Prioritizes cookie-based auth, falls back to header-based auth.
    """
    cookie_token = request.cookies.get(COOKIE_NAME_ACCESS)
    if cookie_token:
        user_response = _lookup_user(cookie_token)
        if user_response:
            return user_response

    if credentials:
        user_response = _lookup_user(credentials.credentials)
        if user_response:
            return user_response

    raise HTTPException(status_code=401, detail="Not authenticated")


def get_user_supabase(access_token: Optional[str] = Depends(get_access_token)) -> Client:
    """Supabase client acting as the caller (RLS applies)."""
    return get_supabase_client(access_token)


def create_service_dependency(service_class: Type[ServiceT]) -> Callable[..., ServiceT]:
    """
    Build a dependency yielding ``service_class(user_client, user_id)``.

    Usage:
        get_config_service = create_service_dependency(SyncConfigService)

        @router.get("")
        async def list_configs(service=Depends(get_config_service)): ...
    """

    def dependency(
        user=Depends(verify_auth),
        supabase: Client = Depends(get_user_supabase),
    ) -> ServiceT:
        return service_class(supabase, user.user.id)

    dependency.__name__ = f"get_{service_class.__name__}"
    return dependency
