"""Database clients and utilities."""

from .supabase import get_document_store, get_supabase_client

__all__ = ["get_document_store", "get_supabase_client"]
