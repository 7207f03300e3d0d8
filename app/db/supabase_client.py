"""Supabase client for the conversation store and usage log."""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Shared Supabase client backing messages, conversations and llm_usage_log.

    Returns:
        Client authenticated with the service role key

    Raises:
        RuntimeError: If the client cannot be created from settings
    """
    settings = get_settings()
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Supabase client unavailable for {settings.SUPABASE_URL}: {e}") from e
