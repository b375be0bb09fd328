"""
Celery worker configuration for background tasks.
"""
from celery import Celery
from mehfil.config import settings

# Create Celery app
celery_app = Celery(
    "mehfil_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "worker.tasks.email_tasks",
        "worker.tasks.maintenance_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Task routes
    task_routes={
        "worker.tasks.email_tasks.*": {"queue": "email"},
        "worker.tasks.maintenance_tasks.*": {"queue": "maintenance"},
    },

    # Beat schedule for periodic tasks
    beat_schedule={
        "sweep-orphaned-registrations": {
            "task": "worker.tasks.maintenance_tasks.sweep_orphans",
            "schedule": settings.ORPHAN_SWEEP_INTERVAL_SECONDS,
        },
        "reconcile-registration-counters": {
            "task": "worker.tasks.maintenance_tasks.reconcile_counters",
            "schedule": settings.COUNTER_RECONCILE_INTERVAL_SECONDS,
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
