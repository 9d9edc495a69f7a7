from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, UniqueConstraint

from shopcore.data.database import Base, UTCDateTime
from shopcore.domain.enums import DiscountStatus


class DiscountModel(Base):
    __tablename__ = "discounts"

    id = Column(String(36), primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    code = Column(String, nullable=False)

    type = Column(String(20), nullable=False)
    value = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=DiscountStatus.ACTIVE.value)

    min_purchase_cents = Column(Integer, nullable=False, default=0)
    max_discount_cents = Column(Integer, nullable=True)
    starts_at = Column(UTCDateTime, nullable=True)
    expires_at = Column(UTCDateTime, nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_limit_per_customer = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("store_id", "code", name="u_discount_store_code"),)


class DiscountUsageModel(Base):
    __tablename__ = "discount_usage"

    id = Column(Integer, primary_key=True)
    discount_id = Column(String(36), ForeignKey("discounts.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)

    customer_email = Column(String, nullable=False, index=True)
    discount_amount_cents = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
