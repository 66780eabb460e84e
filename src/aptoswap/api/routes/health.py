"""Health check endpoints."""

from fastapi import APIRouter

from aptoswap.cache import get_pair_cache, get_token_list_cache
from aptoswap.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "aptoswap"}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with configuration and cache info."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": "aptoswap",
        "version": "0.1.0",
        "config": settings.get_safe_dict(),
        "caches": {
            "pairs": get_pair_cache().stats(),
            "token_lists": get_token_list_cache().stats(),
        },
    }
