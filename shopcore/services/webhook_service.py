# shopcore/services/webhook_service.py
import json
import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcore.data.database import utcnow
from shopcore.data.models.event import EventModel
from shopcore.data.models.order import OrderModel, OrderItemModel
from shopcore.data.models.store import StoreModel
from shopcore.domain.enums import ORDER_CREATED, OrderStatus, StripeEventType
from shopcore.domain.errors import InvalidRequest, NotFound
from shopcore.repos.cart_repo import CartRepo
from shopcore.repos.event_repo import EventRepo
from shopcore.repos.order_repo import OrderRepo
from shopcore.repos.store_repo import StoreRepo
from shopcore.services.cart_service import subtotal_of
from shopcore.services.discount_service import DiscountService, is_countable
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.services.notification_service import NotificationService
from shopcore.services.order_service import format_order_number, order_view
from shopcore.services.stripe_client import StripeClient
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


def _shipping_address(session: Dict[str, Any]) -> Dict[str, Any] | None:
    details = session.get("shipping_details") or (
        (session.get("collected_information") or {}).get("shipping_details")
    )
    if not details:
        return None
    return details.get("address")


def _payment_intent_id(session: Dict[str, Any]) -> str | None:
    intent = session.get("payment_intent")
    if isinstance(intent, dict):
        return intent.get("id")
    return intent


class WebhookService:
    """
    Turns payment-completion events into orders.

    Processors redeliver freely, so processing is idempotent twice over:
    by processor event id (events table) and by cart id (orders.cart_id).
    The order, its items, the inventory sale, the discount usage and the
    event row are committed together.
    """

    def __init__(self, db: Session, notifier: NotificationService | None = None):
        self.db = db
        self.stores = StoreRepo(db)
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.events = EventRepo(db)
        self.ledger = InventoryLedger(db)
        self.discounts = DiscountService(db)
        self.notifier = notifier or NotificationService(db)

    def handle_stripe_event(self, payload: bytes, signature: str | None, now: datetime | None = None) -> Dict[str, Any]:
        now = now or utcnow()

        if not signature:
            raise InvalidRequest("Missing stripe-signature header")

        try:
            raw = json.loads(payload)
        except ValueError:
            raise InvalidRequest("Invalid JSON")

        if not isinstance(raw, dict):
            raise InvalidRequest("Invalid JSON")

        obj = (raw.get("data") or {}).get("object") or {}
        store_id = (obj.get("metadata") or {}).get("store_id")
        if not store_id:
            raise InvalidRequest("Missing store_id in metadata")

        store = self.stores.get_store(store_id)
        if not store or not store.stripe_webhook_secret:
            raise NotFound("Store not found or webhook secret missing")

        event = StripeClient.verify_webhook(payload, signature, store.stripe_webhook_secret)
        event_id = event.get("id")
        event_type = event.get("type") or ""
        if not event_id:
            raise InvalidRequest("Event has no id")

        if self.events.exists(event_id):
            logger.info(f"Event {event_id} already processed, skipping")
            return {"ok": True}

        order = None
        try:
            try:
                kind = StripeEventType(event_type)
            except ValueError:
                kind = None

            if kind is StripeEventType.CHECKOUT_SESSION_COMPLETED:
                order = self._materialize(store, event["data"]["object"], now)

            #always logged, so the dedup check also covers events that created nothing
            self.events.add_event(
                EventModel(
                    store_id=store.id,
                    stripe_event_id=event_id,
                    type=event_type,
                    payload=json.dumps(event.get("data", {}).get("object", {})),
                    created_at=now,
                )
            )
            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            #only a concurrent delivery of the same event or cart counts as done
            if self._already_recorded(event_id, obj):
                logger.info(f"Event {event_id} lost a race with a concurrent delivery, skipping")
                return {"ok": True}
            logger.error(f"Event {event_id} failed on a constraint, leaving it for redelivery: {e}")
            raise

        except Exception:
            self.db.rollback()
            raise

        if order is not None:
            logger.info(f"Order {order.number} created from event {event_id}")
            try:
                self.notifier.dispatch(store.id, ORDER_CREATED, {"order": order_view(order)}, now)
            except Exception as e:
                #order is durable; delivery is best effort from here
                logger.error(f"Failed to dispatch {ORDER_CREATED} for order {order.number}: {e}")

        return {"ok": True}

    def _already_recorded(self, event_id: str, session: Dict[str, Any]) -> bool:
        if self.events.exists(event_id):
            return True
        cart_id = (session.get("metadata") or {}).get("cart_id")
        return bool(cart_id) and self.orders.get_by_cart(cart_id) is not None

    def _materialize(self, store: StoreModel, session: Dict[str, Any], now: datetime) -> OrderModel | None:
        metadata = session.get("metadata") or {}

        cart_id = metadata.get("cart_id")
        if not cart_id:
            return None

        cart = self.carts.get_cart(cart_id, store.id)
        if not cart:
            logger.warning(f"Event references unknown cart {cart_id}, no order created")
            return None

        if self.orders.get_by_cart(cart.id):
            logger.info(f"Cart {cart.id} already has an order, no order created")
            return None

        items = self.carts.get_cart_items(cart.id)

        discount_code = None
        discount_id = None
        discount_cents = 0
        counted = False

        if metadata.get("discount_id"):
            discount = self.discounts.get_by_id(store.id, metadata["discount_id"])
            if discount:
                discount_code = discount.code
                discount_id = discount.id
                #what the customer was charged at checkout, whatever the discount says now
                discount_cents = cart.discount_amount_cents or 0

                if is_countable(discount, now) and discount_cents > 0:
                    counted = self.discounts.record_usage(discount.id, now)
                    if not counted:
                        logger.info(f"Discount {discount.code} at its usage limit, usage not counted")

        totals = session.get("total_details") or {}

        order = OrderModel(
            id=str(uuid.uuid4()),
            store_id=store.id,
            cart_id=cart.id,
            number=format_order_number(self.stores.next_order_seq(store.id)),
            status=OrderStatus.PAID.value,
            customer_email=cart.customer_email,
            ship_to=_shipping_address(session),
            subtotal_cents=subtotal_of(items),
            tax_cents=totals.get("amount_tax") or 0,
            shipping_cents=totals.get("amount_shipping") or 0,
            total_cents=session.get("amount_total") or 0,
            currency=cart.currency,
            discount_code=discount_code,
            discount_id=discount_id,
            discount_amount_cents=discount_cents,
            stripe_checkout_session_id=session.get("id"),
            stripe_payment_intent_id=_payment_intent_id(session),
            created_at=now,
        )
        order.items = [
            OrderItemModel(sku=i.sku, title=i.title, qty=i.qty, unit_price_cents=i.unit_price_cents)
            for i in items
        ]
        self.orders.add_order(order)

        #the only place a reservation turns into a sale
        for item in items:
            self.ledger.sell(store.id, item.sku, item.qty, now)
            self.carts.hold(item.id, 0)

        if counted:
            self.discounts.add_usage(discount_id, order.id, cart.customer_email, discount_cents, now)

        return order
