"""
Environment configuration.

All settings come from environment variables (a local .env file is loaded
first). Values are read once at import; Supabase/Redis clients that use them
are created lazily by their own modules.
"""

import os

from dotenv import find_dotenv, load_dotenv

_ = load_dotenv(find_dotenv())


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    return int(value)


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    return float(value)


# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Redis (Celery broker + sync leases)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# GitHub
GITHUB_API_BASE = os.getenv("GITHUB_API_BASE", "https://api.github.com")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")  # used when a config has no token
GITHUB_TIMEOUT_SECONDS = _float_env("GITHUB_TIMEOUT_SECONDS", 60.0)

# Sync engine
SYNC_BATCH_SIZE = _int_env("SYNC_BATCH_SIZE", 5)
SYNC_RUN_TIMEOUT_SECONDS = _float_env("SYNC_RUN_TIMEOUT_SECONDS", 1800.0)

# Sync history
LOG_RETENTION_DAYS = _int_env("LOG_RETENTION_DAYS", 3)
