"""
System health and maintenance API endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from mehfil.database import get_db
from mehfil.dependencies import verify_admin_key
from mehfil.services.system_service import SystemService
from mehfil.services.cascade_service import CascadeService
from mehfil.schemas.schemas import (
    HealthResponse, SweepOrphansResponse, ReconcileCountersResponse
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["System"])
maintenance_router = APIRouter(
    prefix="/maintenance",
    tags=["Maintenance"],
    dependencies=[Depends(verify_admin_key)],
)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Simple Health Check",
    description="Health check for load balancers. Returns 503 if the database is unreachable."
)
async def simple_health(
    db: AsyncSession = Depends(get_db)
):
    result = await SystemService.get_simple_health(db)

    if result["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Database unavailable")

    return result


@router.get(
    "/health/full",
    summary="Full Health Check",
    description="""
    Checks:
    - **Database**: registrations and scans
    - **Redis**: Celery broker for ticket emails and maintenance jobs
    """
)
async def full_health(
    db: AsyncSession = Depends(get_db)
):
    return await SystemService.get_full_health(db)


@maintenance_router.post(
    "/sweep-orphans",
    response_model=SweepOrphansResponse,
    summary="Sweep Orphans",
    description="Delete registrations and scan entries whose event no longer exists."
)
async def sweep_orphans(
    db: AsyncSession = Depends(get_db)
):
    counts = await CascadeService.sweep_orphans(db)
    return SweepOrphansResponse(**counts)


@maintenance_router.post(
    "/reconcile-counters",
    response_model=ReconcileCountersResponse,
    summary="Reconcile Counters",
    description="Recompute registered counts from the registrations table (one event or all)."
)
async def reconcile_counters(
    event_id: Optional[str] = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db)
):
    corrections = await CascadeService.reconcile_counters(db, event_id)
    return ReconcileCountersResponse(corrected=corrections)
