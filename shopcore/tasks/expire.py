# shopcore/tasks/expire.py
import uuid

from shopcore.celery_worker import celery_app
from shopcore.data.database import SessionLocal
from shopcore.services.expiry_service import ExpiryService
from shopcore.services.lock_service import LockService
from shopcore.utils.settings import TASK_LOCK_TTL_SECONDS
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()


@celery_app.task(name="shopcore.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    owner = str(uuid.uuid4())
    if not lock_service.acquire_task_lock("expire_carts", owner, TASK_LOCK_TTL_SECONDS):
        logger.info("Expire carts already running elsewhere, skipping")
        return 0

    db = SessionLocal()
    try:
        return ExpiryService(db).sweep()
    finally:
        db.close()
        lock_service.release_task_lock("expire_carts", owner)
