"""Supabase client and document-store factory."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings
from ..persistence.documents import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


@lru_cache()
def get_document_store() -> DocumentStore:
    """Return the process-wide document store selected by ``document_backend``."""
    if settings.document_backend == "supabase":
        client = get_supabase_client()
        if client is None:
            raise RuntimeError(
                "HAULPLAN_DOCUMENT_BACKEND is 'supabase' but HAULPLAN_SUPABASE_URL/HAULPLAN_SUPABASE_KEY are not set."
            )
        return SupabaseDocumentStore(client)
    logger.info("Using in-memory document store; data is lost on restart")
    return InMemoryDocumentStore()
