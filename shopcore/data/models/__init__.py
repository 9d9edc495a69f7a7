#import all models so SQLAlchemy registers them in Base.metadata

from shopcore.data.models.store import StoreModel
from shopcore.data.models.variant import VariantModel
from shopcore.data.models.inventory import InventoryModel, InventoryLogModel
from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.data.models.discount import DiscountModel, DiscountUsageModel
from shopcore.data.models.order import OrderModel, OrderItemModel, RefundModel
from shopcore.data.models.event import EventModel
from shopcore.data.models.webhook import WebhookSubscriptionModel, WebhookDeliveryModel

__all__ = [
    "StoreModel",
    "VariantModel",
    "InventoryModel",
    "InventoryLogModel",
    "CartModel",
    "CartItemModel",
    "DiscountModel",
    "DiscountUsageModel",
    "OrderModel",
    "OrderItemModel",
    "RefundModel",
    "EventModel",
    "WebhookSubscriptionModel",
    "WebhookDeliveryModel",
]
