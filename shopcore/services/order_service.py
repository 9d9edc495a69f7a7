# shopcore/services/order_service.py
import uuid
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from shopcore.data.database import utcnow
from shopcore.data.models.order import OrderModel, OrderItemModel, RefundModel
from shopcore.data.models.store import StoreModel
from shopcore.domain.enums import OrderStatus, VariantStatus
from shopcore.domain.errors import (
    Conflict,
    InsufficientInventory,
    InvalidRequest,
    NotFound,
    ProcessorError,
)
from shopcore.repos.order_repo import OrderRepo
from shopcore.repos.store_repo import StoreRepo
from shopcore.services.discount_service import DiscountService, calculate_discount, is_countable
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.services.stripe_client import client_for_store
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

#operator-settable statuses; refunded only comes from refund()
SETTABLE_STATUSES = {
    OrderStatus.PAID,
    OrderStatus.FULFILLED,
    OrderStatus.SHIPPED,
    OrderStatus.CANCELLED,
}


def format_order_number(seq: int) -> str:
    return f"ORD-{seq:04d}"


def order_view(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "number": order.number,
        "status": order.status,
        "customer_email": order.customer_email,
        "ship_to": order.ship_to,
        "tracking_number": order.tracking_number,
        "amounts": {
            "subtotal_cents": order.subtotal_cents,
            "discount_cents": order.discount_amount_cents or 0,
            "tax_cents": order.tax_cents,
            "shipping_cents": order.shipping_cents,
            "total_cents": order.total_cents,
            "currency": order.currency,
        },
        "discount": (
            {"code": order.discount_code, "amount_cents": order.discount_amount_cents or 0}
            if order.discount_code
            else None
        ),
        "stripe": {
            "checkout_session_id": order.stripe_checkout_session_id,
            "payment_intent_id": order.stripe_payment_intent_id,
        },
        "items": [
            {
                "sku": i.sku,
                "title": i.title,
                "qty": i.qty,
                "unit_price_cents": i.unit_price_cents,
            }
            for i in order.items
        ],
        "created_at": order.created_at,
    }


class OrderService:
    """
    Operator side of orders: read, status/tracking updates, refunds and
    processor-free test orders.
    """

    def __init__(self, db: Session, processor_factory: Callable[[StoreModel], Any] = client_for_store):
        self.db = db
        self.repo = OrderRepo(db)
        self.stores = StoreRepo(db)
        self.ledger = InventoryLedger(db)
        self.discounts = DiscountService(db)
        self.processor_factory = processor_factory

    #queries
    def list_orders(self, store_id: str) -> list[Dict[str, Any]]:
        return [order_view(o) for o in self.repo.list_orders(store_id)]

    def get_order(self, store_id: str, order_id: str) -> Dict[str, Any]:
        return order_view(self._load(store_id, order_id))

    #commands
    def update_status(
        self,
        store_id: str,
        order_id: str,
        status: str | None = None,
        tracking_number: str | None = None,
    ) -> Dict[str, Any]:
        order = self._load(store_id, order_id)

        if order.status == OrderStatus.REFUNDED.value:
            raise Conflict("Order already refunded")

        fields: Dict[str, Any] = {}
        if status is not None:
            try:
                new_status = OrderStatus(status)
            except ValueError:
                raise InvalidRequest(f"Unknown order status: {status}")
            if new_status not in SETTABLE_STATUSES:
                raise InvalidRequest("Use the refund endpoint to refund an order")
            fields["status"] = new_status.value
        if tracking_number is not None:
            fields["tracking_number"] = tracking_number

        if not fields:
            raise InvalidRequest("Nothing to update")

        updated = self.repo.update_order(order, **fields)
        logger.info(f"Order {updated.number} updated: {fields}")
        return order_view(updated)

    def refund(self, store_id: str, order_id: str, amount_cents: int | None = None) -> Dict[str, Any]:
        store = self.stores.get_store(store_id)
        if not store or not store.stripe_secret_key:
            raise InvalidRequest("Payment processor not connected for this store")

        order = self._load(store_id, order_id)

        if order.status == OrderStatus.REFUNDED.value:
            raise Conflict("Order already refunded")
        if not order.stripe_payment_intent_id:
            raise InvalidRequest("Cannot refund test orders (no processor payment)")
        if amount_cents is not None and amount_cents <= 0:
            raise InvalidRequest("amount_cents must be positive")

        processor = self.processor_factory(store)
        try:
            refund = processor.create_refund(order.stripe_payment_intent_id, amount_cents)
        except ProcessorError:
            raise
        except Exception as e:
            raise ProcessorError(str(e) or "Refund failed")

        self.repo.add_refund(
            RefundModel(
                order_id=order.id,
                stripe_refund_id=refund["id"],
                amount_cents=refund.get("amount") or amount_cents or order.total_cents,
                status=refund.get("status") or "succeeded",
            )
        )

        if amount_cents is None or amount_cents >= order.total_cents:
            order.status = OrderStatus.REFUNDED.value
        self.db.commit()

        logger.info(f"Refunded order {order.number}: {refund['id']}")

        return {"stripe_refund_id": refund["id"], "status": refund.get("status")}

    def create_test_order(
        self,
        store_id: str,
        customer_email: str,
        items: list,
        discount_code: str | None = None,
        now: datetime | None = None,
    ) -> Dict[str, Any]:
        """
        Builds a paid order without the payment processor, for local testing.
        Inventory goes through reserve + sell like a real checkout.
        """
        now = now or utcnow()

        if not customer_email:
            raise InvalidRequest("customer_email is required")
        if not isinstance(items, list) or not items:
            raise InvalidRequest("items array is required")
        if not self.stores.get_store(store_id):
            raise NotFound("Store not found")

        lines = []
        for entry in items:
            sku = entry.get("sku") if isinstance(entry, dict) else None
            qty = entry.get("qty") if isinstance(entry, dict) else None
            if not sku or not isinstance(qty, int) or qty < 1:
                raise InvalidRequest("Each item needs sku and qty > 0")

            variant = self.stores.get_variant(store_id, sku)
            if not variant:
                raise NotFound(f"SKU not found: {sku}")
            if variant.status != VariantStatus.ACTIVE.value:
                raise InvalidRequest(f"SKU not active: {sku}")
            lines.append((sku, variant.title, qty, variant.price_cents))

        subtotal = sum(price * qty for _, _, qty, price in lines)

        discount = None
        discount_cents = 0
        if discount_code:
            discount = self.discounts.get_by_code(store_id, discount_code)
            if not discount:
                raise NotFound("Discount code not found")
            self.discounts.validate(discount, subtotal, customer_email, now)
            discount_cents = calculate_discount(discount, subtotal)

        try:
            for sku, _, qty, _ in lines:
                if not self.ledger.reserve(store_id, sku, qty, now):
                    raise InsufficientInventory(sku)
                self.ledger.sell(store_id, sku, qty, now)

            order = OrderModel(
                id=str(uuid.uuid4()),
                store_id=store_id,
                number=format_order_number(self.stores.next_order_seq(store_id)),
                status=OrderStatus.PAID.value,
                customer_email=customer_email,
                subtotal_cents=subtotal,
                tax_cents=0,
                shipping_cents=0,
                total_cents=subtotal - discount_cents,
                discount_code=discount.code if discount else None,
                discount_id=discount.id if discount else None,
                discount_amount_cents=discount_cents,
                created_at=now,
            )
            order.items = [
                OrderItemModel(sku=sku, title=title, qty=qty, unit_price_cents=price)
                for sku, title, qty, price in lines
            ]
            self.repo.add_order(order)

            if discount and discount_cents > 0 and is_countable(discount, now):
                if self.discounts.record_usage(discount.id, now):
                    self.discounts.add_usage(discount.id, order.id, customer_email, discount_cents, now)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created test order {order.number} in store {store_id}")
        return order_view(order)

    def _load(self, store_id: str, order_id: str) -> OrderModel:
        order = self.repo.get_order(order_id, store_id)
        if not order:
            raise NotFound("Order not found")
        return order
