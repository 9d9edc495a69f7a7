# shopcore/services/notification_service.py
import hashlib
import hmac
import json
from datetime import datetime, timedelta
from typing import Any, Dict

import requests
from requests import RequestException
from sqlalchemy.orm import Session

from shopcore.celery_worker import celery_app
from shopcore.data.database import SessionLocal, utcnow
from shopcore.data.models.webhook import WebhookDeliveryModel
from shopcore.domain.enums import DeliveryStatus
from shopcore.repos.webhook_repo import WebhookRepo
from shopcore.utils.settings import (
    WEBHOOK_MAX_ATTEMPTS,
    WEBHOOK_PENDING_GRACE_SECONDS,
    WEBHOOK_TIMEOUT_SECONDS,
)
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Shopcore-Signature"


def sign_body(body: bytes, secret: str, timestamp: int) -> str:
    """
    Same t=<ts>,v1=<hex> scheme the payment processor uses, so receivers
    can verify with any Stripe-compatible webhook helper.
    """
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class NotificationService:
    """
    Outbound store webhooks.
    dispatch() records one delivery per subscribed endpoint and hands it to
    Celery; failed deliveries are picked up again by retry_failed().
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WebhookRepo(db)

    def dispatch(self, store_id: str, event_type: str, data: Dict[str, Any], now: datetime | None = None) -> list[int]:
        now = now or utcnow()

        body = json.dumps(
            {"type": event_type, "created_at": now.isoformat(), "data": data},
            default=str,
        )

        deliveries = [
            self.repo.add_delivery(
                WebhookDeliveryModel(
                    subscription_id=sub.id,
                    event_type=event_type,
                    payload=body,
                    status=DeliveryStatus.PENDING.value,
                    attempts=0,
                    created_at=now,
                )
            )
            for sub in self.repo.active_subscriptions(store_id)
            if sub.wants(event_type)
        ]
        self.db.commit()

        ids = [d.id for d in deliveries]
        logger.info(f"Dispatching {event_type} for store {store_id} to {len(ids)} endpoint(s)")

        for delivery in deliveries:
            try:
                deliver_webhook_task.delay(delivery.id)
            except Exception as e:
                #broker down: leave it for the retry sweep
                logger.warning(f"Could not enqueue delivery {delivery.id}: {e}")
                delivery.status = DeliveryStatus.FAILED.value
                delivery.last_error = f"enqueue failed: {e}"
        self.db.commit()

        return ids

    def deliver(self, delivery_id: int, now: datetime | None = None) -> bool:
        now = now or utcnow()

        delivery = self.repo.get_delivery(delivery_id)
        if delivery is None:
            logger.warning(f"Delivery {delivery_id} not found")
            return False
        if delivery.status == DeliveryStatus.DELIVERED.value:
            return True

        sub = delivery.subscription
        body = delivery.payload.encode()
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_body(body, sub.secret, int(now.timestamp())),
        }

        delivery.attempts += 1
        try:
            resp = requests.post(sub.url, data=body, headers=headers, timeout=WEBHOOK_TIMEOUT_SECONDS)
            ok = 200 <= resp.status_code < 300
            error = None if ok else f"HTTP {resp.status_code}"
        except RequestException as e:
            ok = False
            error = str(e)

        if ok:
            delivery.status = DeliveryStatus.DELIVERED.value
            delivery.delivered_at = now
            delivery.last_error = None
            logger.info(f"Delivered {delivery.event_type} #{delivery.id} to {sub.url}")
        else:
            delivery.status = DeliveryStatus.FAILED.value
            delivery.last_error = error
            logger.warning(
                f"Delivery {delivery.id} to {sub.url} failed "
                f"(attempt {delivery.attempts}/{WEBHOOK_MAX_ATTEMPTS}): {error}"
            )

        self.db.commit()
        return ok

    def retry_failed(self, now: datetime | None = None) -> int:
        now = now or utcnow()

        stale_before = now - timedelta(seconds=WEBHOOK_PENDING_GRACE_SECONDS)
        pending = self.repo.failed_deliveries(WEBHOOK_MAX_ATTEMPTS, stale_before)
        for delivery in pending:
            self.deliver(delivery.id, now)

        logger.info(f"Retried {len(pending)} failed or stuck webhook deliveries")
        return len(pending)


@celery_app.task(name="shopcore.services.notification_service.deliver_webhook_task")
def deliver_webhook_task(delivery_id: int):
    db = SessionLocal()
    try:
        ok = NotificationService(db).deliver(delivery_id)
    finally:
        db.close()

    return {"delivery_id": delivery_id, "status": "delivered" if ok else "failed"}
