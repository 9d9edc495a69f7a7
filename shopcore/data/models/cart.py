#shopcore/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String
from sqlalchemy.orm import relationship

from shopcore.data.database import Base, UTCDateTime
from shopcore.domain.enums import CartStatus


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    customer_email = Column(String, nullable=False)

    status = Column(String(20), nullable=False, default=CartStatus.OPEN.value)
    currency = Column(String(3), nullable=False, default="USD")
    expires_at = Column(UTCDateTime, nullable=False)

    discount_code = Column(String, nullable=True)
    discount_id = Column(String(36), nullable=True)
    discount_amount_cents = Column(Integer, nullable=False, default=0)

    stripe_checkout_session_id = Column(String, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.sku",
    )
