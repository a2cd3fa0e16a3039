"""Health check router — liveness + readiness.

Readiness pings the store's backing store; the store bounds that call by
its persistence timeout, so a hung Redis reports "down" instead of hanging
the probe.
"""

import structlog
from fastapi import APIRouter, Depends

from apps.api.core.config import Settings
from apps.api.deps import get_app_settings, get_store
from packages.transaction_store import TransactionStore

router = APIRouter(tags=["health"])
logger = structlog.get_logger()


@router.get("/health")
async def health_liveness():
    """Liveness probe — returns 200 if the API process is running."""
    return {"status": "healthy", "service": "api"}


@router.get("/health/ready")
async def health_readiness(
    store: TransactionStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Readiness probe — checks backing-store connectivity."""
    status = {
        "status": "healthy",
        "services": {
            "api": "up",
            "store": "unknown",
        },
        "store_backend": settings.STORE_BACKEND,
        "transactions": len(store),
    }

    if await store.ping():
        status["services"]["store"] = "up"
    else:
        status["services"]["store"] = "down"
        status["status"] = "degraded"
        logger.warning("store_health_failed", backend=settings.STORE_BACKEND)

    return status
