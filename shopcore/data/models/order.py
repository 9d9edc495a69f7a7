from sqlalchemy import Column, Integer, ForeignKey, String, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from shopcore.data.database import Base, UTCDateTime
from shopcore.domain.enums import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    #one order per cart, null for test orders
    cart_id = Column(String(36), ForeignKey("carts.id"), nullable=True, unique=True)
    number = Column(String, nullable=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PAID.value)
    customer_email = Column(String, nullable=False)
    ship_to = Column(JSON, nullable=True)
    tracking_number = Column(String, nullable=True)

    subtotal_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    discount_code = Column(String, nullable=True)
    discount_id = Column(String(36), nullable=True)
    discount_amount_cents = Column(Integer, nullable=False, default=0)

    stripe_checkout_session_id = Column(String, nullable=True)
    stripe_payment_intent_id = Column(String, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (UniqueConstraint("store_id", "number", name="u_order_store_number"),)


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    sku = Column(String, nullable=False)
    title = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)

    order = relationship("OrderModel", back_populates="items")


class RefundModel(Base):
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)

    stripe_refund_id = Column(String, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
