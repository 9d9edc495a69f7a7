# shopcore/celery_worker.py
from celery import Celery

from shopcore.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    SWEEP_INTERVAL_SECONDS,
    DELIVERY_RETRY_INTERVAL_SECONDS,
)

celery_app = Celery(
    "shopcore",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

#explicit imports so the worker registers every task
celery_app.conf.imports = (
    "shopcore.tasks.expire",
    "shopcore.tasks.deliveries",
    "shopcore.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-carts": {
        "task": "shopcore.tasks.expire.expire_carts_task",
        "schedule": SWEEP_INTERVAL_SECONDS,
    },
    "retry-failed-deliveries": {
        "task": "shopcore.tasks.deliveries.retry_failed_deliveries_task",
        "schedule": DELIVERY_RETRY_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
