"""Celery application configuration."""

from celery import Celery

from app.core.config import settings

# Create Celery instance
celery_app = Celery(
    "store_ai_chat",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.sync_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Catalog refresh for every active store
celery_app.conf.beat_schedule = {
    "sync-all-stores": {
        "task": "app.tasks.sync_tasks.sync_all_stores_task",
        "schedule": settings.store_sync_interval_minutes * 60,
        "options": {"expires": settings.store_sync_interval_minutes * 60},
    },
}

celery_app.conf.task_routes = {
    "app.tasks.sync_tasks.*": {"queue": "sync"},
}
