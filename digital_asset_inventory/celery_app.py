"""
Celery application setup for the digital asset inventory.

Workers run inventory scans and archive maintenance out of band. Tasks live
in digital_asset_inventory.tasks.

Queue Architecture:
- inventory: Full inventory scans (long running, chunked)
- maintenance: Deferred checksums and archive reconciliation
"""
import os

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from .config import settings


def _bool(val: str, default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).lower() in {"1", "true", "yes", "on"}


app = Celery(
    "digital_asset_inventory",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["digital_asset_inventory.tasks"],
)

app.conf.task_queues = (
    Queue("inventory", routing_key="inventory"),
    Queue("maintenance", routing_key="maintenance"),
)

# Core settings with sensible defaults, overridable via env
app.conf.update(
    task_acks_late=_bool(os.getenv("CELERY_ACKS_LATE", "true"), True),
    worker_prefetch_multiplier=int(os.getenv("CELERY_PREFETCH_MULTIPLIER", "1")),
    task_soft_time_limit=int(os.getenv("CELERY_TASK_SOFT_TIME_LIMIT", "3600")),
    task_time_limit=int(os.getenv("CELERY_TASK_TIME_LIMIT", "3900")),
    result_expires=int(os.getenv("CELERY_RESULT_EXPIRES", "259200")),  # 3 days
    task_default_queue="maintenance",
    task_routes={
        "digital_asset_inventory.tasks.run_inventory_scan_task": {"queue": "inventory"},
        "digital_asset_inventory.tasks.compute_archive_checksum_task": {"queue": "maintenance"},
        "digital_asset_inventory.tasks.process_pending_checksums_task": {"queue": "maintenance"},
        "digital_asset_inventory.tasks.reconcile_archives_task": {"queue": "maintenance"},
    },
)

# ============================================================================
# Celery Beat Schedule (for periodic tasks)
# ============================================================================
beat_schedule = {}
if settings.reconcile_schedule_hour is not None:
    beat_schedule["reconcile-archives-nightly"] = {
        "task": "digital_asset_inventory.tasks.reconcile_archives_task",
        "schedule": crontab(hour=settings.reconcile_schedule_hour, minute=0),
    }
    beat_schedule["pending-checksums-nightly"] = {
        "task": "digital_asset_inventory.tasks.process_pending_checksums_task",
        "schedule": crontab(hour=settings.reconcile_schedule_hour, minute=30),
    }

app.conf.beat_schedule = beat_schedule
