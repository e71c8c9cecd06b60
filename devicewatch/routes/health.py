"""
Health check and monitoring endpoints.
"""
import time
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from devicewatch.db import get_db, check_database_health
from devicewatch.services.cache import get_cache
from devicewatch.services.email import get_sendgrid_client
from devicewatch.core.settings import settings

logger = logging.getLogger("devicewatch.health")
router = APIRouter()

@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "version": "1.0.0"
    }

@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Detailed health check with service status."""
    start_time = time.time()

    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "services": {}
    }

    # Check database
    try:
        db_health = await check_database_health()
        health_status["services"]["database"] = db_health
        if db_health["status"] != "healthy":
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "degraded"

    # Check SendGrid
    try:
        if get_sendgrid_client():
            health_status["services"]["email"] = {
                "status": "configured",
                "provider": "sendgrid"
            }
        else:
            health_status["services"]["email"] = {
                "status": "not_configured",
                "note": "New device notifications are logged but not sent"
            }
    except Exception as e:
        health_status["services"]["email"] = {
            "status": "error",
            "error": str(e)
        }

    # Check dedup cache
    try:
        cache = get_cache()
        reachable = cache.ping()
        health_status["services"]["cache"] = {
            "status": "healthy" if reachable else "unhealthy",
            "backend": cache.BACKEND_NAME,
        }
        if not reachable:
            # Dedup degrades to "always miss"; notifications still go out
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["services"]["cache"] = {
            "status": "error",
            "error": str(e)
        }
        health_status["status"] = "degraded"

    response_time = (time.time() - start_time) * 1000
    health_status["response_time_ms"] = round(response_time, 2)

    return health_status

@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Kubernetes-style readiness probe."""
    try:
        db_health = await check_database_health()
        if db_health["status"] != "healthy":
            return {"status": "not_ready", "reason": "database_unavailable"}

        return {"status": "ready"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "reason": str(e)}

@router.get("/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"status": "alive", "timestamp": time.time()}
