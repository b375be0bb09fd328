"""
System Health Service.

Health Check Components:
==============================================================================
1. Database (PostgreSQL / SQLite):
   - Connection test via simple query

2. Broker (Redis):
   - PING/PONG test; Celery ticket emails and maintenance jobs depend on it

Status Definitions:
==============================================================================
- healthy: database and broker reachable
- degraded: broker down (API still serves registrations and scans)
- unhealthy: database unreachable
"""
from typing import Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime
import logging
from redis.asyncio import Redis

from mehfil.config import settings

logger = logging.getLogger(__name__)


class SystemService:
    """Service for system health monitoring."""

    # Component check timeout
    CHECK_TIMEOUT = 5.0

    @staticmethod
    async def check_database(db: AsyncSession) -> Dict[str, Any]:
        """Check database health."""
        start = datetime.utcnow()

        try:
            result = await db.execute(text("SELECT 1"))
            _ = result.scalar()

            latency = (datetime.utcnow() - start).total_seconds() * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "message": "Database connection successful"
            }

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "latency_ms": None,
                "message": str(e)
            }

    @staticmethod
    async def check_redis() -> Dict[str, Any]:
        """Check Redis broker health."""
        start = datetime.utcnow()

        try:
            redis = Redis.from_url(
                settings.REDIS_URL,
                socket_connect_timeout=SystemService.CHECK_TIMEOUT,
                socket_timeout=SystemService.CHECK_TIMEOUT,
                decode_responses=True
            )

            await redis.ping()
            await redis.aclose()

            latency = (datetime.utcnow() - start).total_seconds() * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "message": "Redis connection successful"
            }

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return {
                "status": "unhealthy",
                "latency_ms": None,
                "message": str(e)
            }

    @staticmethod
    async def get_simple_health(db: AsyncSession) -> Dict[str, Any]:
        """Simple health check for load balancers (database only)."""
        db_check = await SystemService.check_database(db)
        return {
            "status": db_check["status"],
            "database": db_check["status"],
            "timestamp": datetime.utcnow().isoformat()
        }

    @staticmethod
    async def get_full_health(db: AsyncSession) -> Dict[str, Any]:
        """Database and broker health with an overall status."""
        db_check = await SystemService.check_database(db)
        redis_check = await SystemService.check_redis()

        if db_check["status"] != "healthy":
            overall_status = "unhealthy"
        elif redis_check["status"] != "healthy":
            overall_status = "degraded"
        else:
            overall_status = "healthy"

        return {
            "status": overall_status,
            "timestamp": datetime.utcnow().isoformat(),
            "components": {
                "database": db_check,
                "redis": redis_check,
            }
        }
