from fastapi import APIRouter, HTTPException, Request
from datetime import datetime

from stashit.core.config import settings
from stashit.database import check_database_health

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )

    overall_status = "healthy" if db_health["overall"] else "unhealthy"
    server = request.app.state.chat_server

    return {
        "status": overall_status,
        "timestamp": datetime.utcnow(),
        "databases": {
            "postgres": "connected" if db_health["postgres"] else "disconnected",
            "redis": "connected" if db_health["redis"] else "disconnected"
        },
        "activeConnections": server.registry.online_count(),
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness check endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness check endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow()}
