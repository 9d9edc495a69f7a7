# shopcore/tasks/deliveries.py
import uuid

from shopcore.celery_worker import celery_app
from shopcore.data.database import SessionLocal
from shopcore.services.lock_service import LockService
from shopcore.services.notification_service import NotificationService
from shopcore.utils.settings import TASK_LOCK_TTL_SECONDS
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()


@celery_app.task(name="shopcore.tasks.deliveries.retry_failed_deliveries_task")
def retry_failed_deliveries_task():
    logger.info("Retry failed deliveries task started")

    owner = str(uuid.uuid4())
    if not lock_service.acquire_task_lock("retry_deliveries", owner, TASK_LOCK_TTL_SECONDS):
        logger.info("Delivery retry already running elsewhere, skipping")
        return 0

    db = SessionLocal()
    try:
        return NotificationService(db).retry_failed()
    finally:
        db.close()
        lock_service.release_task_lock("retry_deliveries", owner)
