from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, Text, Boolean
from sqlalchemy.orm import relationship

from shopcore.data.database import Base, UTCDateTime
from shopcore.domain.enums import DeliveryStatus


class WebhookSubscriptionModel(Base):
    __tablename__ = "webhook_subscriptions"

    id = Column(Integer, primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)

    url = Column(String, nullable=False)
    secret = Column(String, nullable=False)
    #comma separated event types, "*" for everything
    events = Column(String, nullable=False, default="*")
    active = Column(Boolean, nullable=False, default=True)

    def wants(self, event_type: str) -> bool:
        wanted = {e.strip() for e in self.events.split(",") if e.strip()}
        return "*" in wanted or event_type in wanted


class WebhookDeliveryModel(Base):
    __tablename__ = "webhook_deliveries"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, ForeignKey("webhook_subscriptions.id"), nullable=False, index=True)

    event_type = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    delivered_at = Column(UTCDateTime, nullable=True)

    subscription = relationship("WebhookSubscriptionModel")
