import logging
from typing import Optional

from supabase import create_client, Client

from .config import settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None
_initialized = False


def get_supabase() -> Optional[Client]:
    """Get the Supabase client instance, or None when not configured."""
    global _client, _initialized
    if _initialized:
        return _client

    _initialized = True
    if not settings.SUPABASE_URL:
        logger.warning("[Store] SUPABASE_URL not set. Supabase features will be disabled.")
        return None

    # Use service role key if available (full access), otherwise anon key
    key_to_use = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY
    if not key_to_use:
        logger.warning("[Store] No Supabase key found. Supabase features will be disabled.")
        return None

    try:
        _client = create_client(settings.SUPABASE_URL, key_to_use)
    except Exception as e:
        logger.error(f"[Store] Could not create Supabase client: {e}")
        _client = None
    return _client
