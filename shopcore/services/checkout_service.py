# shopcore/services/checkout_service.py
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from shopcore.data.database import utcnow
from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.data.models.discount import DiscountModel
from shopcore.data.models.store import StoreModel
from shopcore.domain.errors import (
    Conflict,
    InsufficientInventory,
    InvalidRequest,
    NotFound,
    ProcessorError,
)
from shopcore.repos.cart_repo import CartRepo
from shopcore.repos.store_repo import StoreRepo
from shopcore.services.cart_service import CartService, require_open, subtotal_of
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.services.stripe_client import client_for_store
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SHIPPING_OPTIONS = [
    {
        "shipping_rate_data": {
            "type": "fixed_amount",
            "fixed_amount": {"amount": 0, "currency": "usd"},
            "display_name": "Standard Shipping",
            "delivery_estimate": {
                "minimum": {"unit": "business_day", "value": 5},
                "maximum": {"unit": "business_day", "value": 7},
            },
        },
    },
]


class CheckoutService:
    """
    Reserve inventory, then open a payment session.

    Reservation is a saga: every item is reserved with its own conditional
    update and any failure afterwards releases exactly what this call
    reserved. The cart only leaves `open` once the processor session exists,
    so inventory is never held without a live payment attempt behind it.
    """

    def __init__(self, db: Session, processor_factory: Callable[[StoreModel], Any] = client_for_store):
        self.db = db
        self.repo = CartRepo(db)
        self.stores = StoreRepo(db)
        self.ledger = InventoryLedger(db)
        self.carts = CartService(db)
        self.processor_factory = processor_factory

    def checkout(
        self,
        store_id: str,
        cart_id: str,
        success_url: str,
        cancel_url: str,
        collect_shipping: bool = False,
        shipping_countries: list[str] | None = None,
        shipping_options: list[dict] | None = None,
        now: datetime | None = None,
    ) -> Dict[str, Any]:
        now = now or utcnow()

        if not success_url:
            raise InvalidRequest("success_url is required")
        if not cancel_url:
            raise InvalidRequest("cancel_url is required")

        store = self.stores.get_store(store_id)
        if not store:
            raise NotFound("Store not found")
        if not store.stripe_secret_key:
            raise InvalidRequest("Payment processor not connected for this store")

        cart = self.repo.get_cart(cart_id, store_id)
        if not cart:
            raise NotFound("Cart not found")
        require_open(cart, now)

        items = self.repo.get_cart_items(cart.id)
        if not items:
            raise InvalidRequest("Cart is empty")

        #server-side totals; a discount that no longer applies is dropped, not fatal
        subtotal = subtotal_of(items)
        discount, discount_cents = self.carts.refresh_discount(cart, subtotal, now, persist_amount=False)
        self.repo.commit()

        self._reserve_all(cart, items, now)

        try:
            processor = self.processor_factory(store)
            session = self._create_session(
                processor, cart, items, discount, discount_cents,
                success_url, cancel_url, collect_shipping, shipping_countries, shipping_options,
            )

            if self.repo.mark_checked_out(cart.id, session["id"], discount_cents) == 0:
                raise Conflict("Cart is not open")
            self.repo.commit()

        except Exception as e:
            logger.warning(f"Checkout of cart {cart.id} failed after reservation: {e}")
            self._compensate(cart, items, now)
            raise

        logger.info(f"Cart {cart.id} checked out, session {session['id']}")

        return {
            "checkout_url": session.get("url"),
            "stripe_checkout_session_id": session["id"],
        }

    def _reserve_all(self, cart: CartModel, items: list[CartItemModel], now: datetime) -> None:
        held: list[CartItemModel] = []

        try:
            #items arrive sorted by sku, a fixed order for every caller
            for item in items:
                if not self.ledger.reserve(cart.store_id, item.sku, item.qty, now):
                    raise InsufficientInventory(item.sku)
                self.repo.hold(item.id, item.qty)
                held.append(item)

        except InsufficientInventory:
            self._release(cart.store_id, held, now)
            self.repo.commit()
            logger.info(f"Checkout of cart {cart.id} rolled back {len(held)} reservation(s)")
            raise

        except Exception:
            #uncommitted reservations vanish with the transaction
            self.repo.rollback()
            raise

        self.repo.commit()

    def _compensate(self, cart: CartModel, items: list[CartItemModel], now: datetime) -> None:
        try:
            self.repo.rollback()
            self._release(cart.store_id, items, now)
            self.repo.commit()
        except Exception as e:
            #the original error is what the caller sees; the sweep is the backstop
            self.repo.rollback()
            logger.error(f"Failed to release reservations for cart {cart.id}: {e}")

    def _release(self, store_id: str, items: list[CartItemModel], now: datetime) -> None:
        for item in items:
            qty = self.repo.claim_held(item.id)
            if qty:
                self.ledger.release(store_id, item.sku, qty, now)

    def _create_session(
        self,
        processor,
        cart: CartModel,
        items: list[CartItemModel],
        discount: DiscountModel | None,
        discount_cents: int,
        success_url: str,
        cancel_url: str,
        collect_shipping: bool,
        shipping_countries: list[str] | None,
        shipping_options: list[dict] | None,
    ) -> dict:
        currency = cart.currency.lower()

        params: Dict[str, Any] = {
            "mode": "payment",
            "customer_email": cart.customer_email,
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": i.title},
                        "unit_amount": i.unit_price_cents,
                    },
                    "quantity": i.qty,
                }
                for i in items
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {
                "cart_id": cart.id,
                "store_id": cart.store_id,
            },
        }

        if collect_shipping:
            params["shipping_address_collection"] = {
                "allowed_countries": shipping_countries or ["US"],
            }
            params["shipping_options"] = shipping_options or DEFAULT_SHIPPING_OPTIONS

        if discount is not None:
            params["metadata"].update({
                "discount_id": discount.id,
                "discount_code": discount.code or "",
                "discount_type": discount.type,
            })

            #checkout sessions take no negative line items, so the discount becomes a coupon
            if discount_cents > 0:
                try:
                    coupon = processor.create_coupon(discount_cents, currency, discount.code or "Discount")
                except ProcessorError as e:
                    raise ProcessorError(f"Failed to apply discount: {e.message}")
                params["discounts"] = [{"coupon": coupon["id"]}]

        return processor.create_checkout_session(params)
