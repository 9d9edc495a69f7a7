# shopcore/domain/enums.py
from enum import Enum


class CartStatus(str, Enum):
    OPEN = "open"
    CHECKED_OUT = "checked_out"
    EXPIRED = "expired"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class DiscountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VariantStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class OrderStatus(str, Enum):
    PAID = "paid"
    FULFILLED = "fulfilled"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class InventoryLogReason(str, Enum):
    RELEASE = "release"
    SALE = "sale"
    ADJUSTMENT = "adjustment"


class StripeEventType(str, Enum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


ORDER_CREATED = "order.created"
