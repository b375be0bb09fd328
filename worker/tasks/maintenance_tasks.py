"""
Maintenance background tasks (scheduled by Celery beat).
"""
from worker.celery_app import celery_app
import logging

logger = logging.getLogger(__name__)


async def run_sweep_orphans() -> dict:
    from mehfil.database import async_session_maker
    from mehfil.services.cascade_service import CascadeService

    async with async_session_maker() as db:
        return await CascadeService.sweep_orphans(db)


async def run_reconcile_counters(event_id: str = None) -> list:
    from mehfil.database import async_session_maker
    from mehfil.services.cascade_service import CascadeService

    async with async_session_maker() as db:
        return await CascadeService.reconcile_counters(db, event_id)


@celery_app.task(name="worker.tasks.maintenance_tasks.sweep_orphans")
def sweep_orphans():
    """
    Remove registrations and scan entries left behind by deleted events.
    """
    logger.info("Running orphan sweep")

    import asyncio

    result = asyncio.run(run_sweep_orphans())
    logger.info(
        f"Orphan sweep done: {result['deleted_registrations']} registrations, "
        f"{result['deleted_scan_entries']} scan entries"
    )
    return result


@celery_app.task(name="worker.tasks.maintenance_tasks.reconcile_counters")
def reconcile_counters(event_id: str = None):
    """
    Recompute registered counters from actual registrations.
    """
    logger.info(f"Reconciling counters for {event_id or 'all events'}")

    import asyncio

    corrections = asyncio.run(run_reconcile_counters(event_id))
    logger.info(f"Counter reconciliation corrected {len(corrections)} event(s)")
    return {"success": True, "corrected": corrections}
