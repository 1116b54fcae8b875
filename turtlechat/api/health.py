from fastapi import APIRouter, HTTPException
from turtlechat.core.config import settings
from turtlechat.database import check_database_health
from turtlechat.utils.time_utils import utc_now

router = APIRouter(tags=["Health"])


def _status(connected):
    if connected is None:
        return "disabled"
    return "connected" if connected else "disconnected"


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    db_health = await check_database_health()

    return {
        "status": "healthy" if db_health["overall"] else "unhealthy",
        "timestamp": utc_now(),
        "databases": {
            "mysql": _status(db_health["mysql"]),
            "mongodb": _status(db_health["mongodb"])
        },
        "chat_store": settings.chat_store_backend,
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": utc_now()}
