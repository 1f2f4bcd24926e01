"""Celery application for sync worker."""

from datetime import timedelta

from celery import Celery

from marketplace_sync.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_orders",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=1800,  # 30 minutes
    task_soft_time_limit=1740,  # 29 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks. Use this instead of the in-process
# scheduler (MARKETPLACE_SYNC_ENABLED=false on the API) so only one driver polls.
app.conf.beat_schedule = {
    "sync-marketplace-orders": {
        "task": "sync_worker.tasks.sync_orders.sync_marketplace_orders",
        "schedule": timedelta(minutes=settings.marketplace_sync_interval_minutes),
    },
}


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
