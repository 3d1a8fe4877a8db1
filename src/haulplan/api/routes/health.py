"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.directions_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check OSRM service health."""
    try:
        osrm_health_check = _get_osrm_health_check()
        status_flag = osrm_health_check()
        return {"service": "osrm", "healthy": status_flag}
    except Exception as e:
        return {"service": "osrm", "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check which document store is active and whether it answers."""
    if settings.document_backend != "supabase":
        return {
            "backend": settings.document_backend,
            "configured": True,
            "connected": True,
            "message": "Using the in-memory document store; data is lost on restart.",
        }

    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "backend": "supabase",
            "configured": False,
            "message": "Supabase not configured. Set HAULPLAN_SUPABASE_URL and HAULPLAN_SUPABASE_KEY environment variables.",
        }

    try:
        result = supabase.table("documents").select("path", count="exact").limit(1).execute()
        return {
            "backend": "supabase",
            "configured": True,
            "connected": True,
            "documents_count": result.count,
            "message": f"Database connected. Found {result.count} documents.",
        }
    except Exception as exc:
        return {
            "backend": "supabase",
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
