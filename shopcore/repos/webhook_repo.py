# shopcore/repos/webhook_repo.py
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from shopcore.data.models.webhook import WebhookSubscriptionModel, WebhookDeliveryModel
from shopcore.domain.enums import DeliveryStatus


class WebhookRepo:
    def __init__(self, db: Session):
        self.db = db

    def active_subscriptions(self, store_id: str) -> list[WebhookSubscriptionModel]:
        return list(
            self.db.execute(
                select(WebhookSubscriptionModel).where(
                    WebhookSubscriptionModel.store_id == store_id,
                    WebhookSubscriptionModel.active.is_(True),
                )
            ).scalars()
        )

    def add_delivery(self, delivery: WebhookDeliveryModel) -> WebhookDeliveryModel:
        self.db.add(delivery)
        return delivery

    def get_delivery(self, delivery_id: int) -> WebhookDeliveryModel | None:
        return self.db.get(WebhookDeliveryModel, delivery_id)

    def failed_deliveries(self, max_attempts: int, stale_before: datetime) -> list[WebhookDeliveryModel]:
        """
        Failed deliveries, plus pending ones created before stale_before
        whose task was presumably lost.
        """
        return list(
            self.db.execute(
                select(WebhookDeliveryModel)
                .where(
                    or_(
                        WebhookDeliveryModel.status == DeliveryStatus.FAILED.value,
                        and_(
                            WebhookDeliveryModel.status == DeliveryStatus.PENDING.value,
                            WebhookDeliveryModel.created_at < stale_before,
                        ),
                    ),
                    WebhookDeliveryModel.attempts < max_attempts,
                )
                .order_by(WebhookDeliveryModel.id)
            ).scalars()
        )
