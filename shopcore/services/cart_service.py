# shopcore/services/cart_service.py
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from shopcore.data.database import utcnow
from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.data.models.discount import DiscountModel
from shopcore.domain.enums import CartStatus, VariantStatus
from shopcore.domain.errors import Conflict, InsufficientInventory, InvalidRequest, NotFound
from shopcore.repos.cart_repo import CartRepo
from shopcore.repos.store_repo import StoreRepo
from shopcore.services.discount_service import DiscountService, calculate_discount
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.utils.settings import CART_TTL_SECONDS, DEFAULT_CURRENCY
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


def subtotal_of(items: list[CartItemModel]) -> int:
    return sum(i.unit_price_cents * i.qty for i in items)


def totals(subtotal_cents: int, discount_cents: int) -> Dict[str, int]:
    #shipping and tax are settled by the payment processor
    return {
        "subtotal_cents": subtotal_cents,
        "discount_cents": discount_cents,
        "shipping_cents": 0,
        "tax_cents": 0,
        "total_cents": subtotal_cents - discount_cents,
    }


def discount_view(discount: DiscountModel | None, amount_cents: int) -> Dict[str, Any] | None:
    if discount is None:
        return None
    return {"code": discount.code, "type": discount.type, "amount_cents": amount_cents}


def require_open(cart: CartModel, now: datetime) -> None:
    if cart.status != CartStatus.OPEN.value:
        raise Conflict("Cart is not open")
    if cart.expires_at <= now:
        raise Conflict("Cart has expired")


class CartService:
    """
    Cart lifecycle for one store:
    commands (create, replace items, apply/remove discount) change state,
    get_cart only reads.

    Subtotals are always recomputed from persisted cart items.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.stores = StoreRepo(db)
        self.ledger = InventoryLedger(db)
        self.discounts = DiscountService(db)

    #query
    def get_cart(self, store_id: str, cart_id: str) -> Dict[str, Any]:
        cart = self._load(store_id, cart_id)
        items = self.repo.get_cart_items(cart.id)

        discount = None
        if cart.discount_id:
            discount = self.discounts.get_by_id(store_id, cart.discount_id)

        amount = cart.discount_amount_cents if discount else 0
        return self._view(cart, items, discount, amount)

    #commands
    def create_cart(self, store_id: str, customer_email: str, now: datetime | None = None) -> Dict[str, Any]:
        now = now or utcnow()

        if not customer_email or "@" not in customer_email:
            raise InvalidRequest("customer_email is required")

        if not self.stores.get_store(store_id):
            raise NotFound("Store not found")

        cart = CartModel(
            id=str(uuid.uuid4()),
            store_id=store_id,
            customer_email=customer_email,
            status=CartStatus.OPEN.value,
            currency=DEFAULT_CURRENCY,
            expires_at=now + timedelta(seconds=CART_TTL_SECONDS),
            discount_amount_cents=0,
            created_at=now,
        )
        created = self.repo.create_cart(cart)

        logger.info(f"Created cart {created.id} in store {store_id} for {customer_email}")

        return self._view(created, [], None, 0)

    def replace_items(self, store_id: str, cart_id: str, items: list, now: datetime | None = None) -> Dict[str, Any]:
        now = now or utcnow()

        if not isinstance(items, list) or not items:
            raise InvalidRequest("items array is required")

        cart = self._load(store_id, cart_id)
        require_open(cart, now)

        #repeated SKUs are merged so availability is checked on the real total
        requested: Dict[str, int] = {}
        for entry in items:
            sku = entry.get("sku") if isinstance(entry, dict) else None
            qty = entry.get("qty") if isinstance(entry, dict) else None
            if not sku or not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
                raise InvalidRequest("Each item needs sku and qty > 0")
            requested[sku] = requested.get(sku, 0) + qty

        #validate the whole batch before touching the cart
        validated = []
        for sku, qty in requested.items():
            variant = self.stores.get_variant(store_id, sku)
            if not variant:
                raise NotFound(f"SKU not found: {sku}")
            if variant.status != VariantStatus.ACTIVE.value:
                raise InvalidRequest(f"SKU not active: {sku}")
            if self.ledger.available(store_id, sku) < qty:
                raise InsufficientInventory(sku)

            validated.append(
                CartItemModel(
                    cart_id=cart.id,
                    sku=sku,
                    title=variant.title,
                    qty=qty,
                    unit_price_cents=variant.price_cents,
                    reserved_qty=0,
                )
            )

        self.repo.replace_items(cart.id, validated)

        persisted = self.repo.get_cart_items(cart.id)
        subtotal = subtotal_of(persisted)
        discount, amount = self.refresh_discount(cart, subtotal, now, persist_amount=True)

        self.repo.commit()

        logger.info(f"Cart {cart.id} now holds {len(persisted)} line(s), subtotal {subtotal}")

        return self._view(self._load(store_id, cart_id), persisted, discount, amount)

    def apply_discount(self, store_id: str, cart_id: str, code: str, now: datetime | None = None) -> Dict[str, Any]:
        now = now or utcnow()

        if not code or not isinstance(code, str):
            raise InvalidRequest("code is required")

        cart = self._load(store_id, cart_id)
        require_open(cart, now)

        discount = self.discounts.get_by_code(store_id, code)
        if not discount:
            raise NotFound("Discount code not found")

        items = self.repo.get_cart_items(cart.id)
        if not items:
            raise InvalidRequest("Cart is empty")

        subtotal = subtotal_of(items)

        #user asked for this discount, so ineligibility surfaces as an error
        self.discounts.validate(discount, subtotal, cart.customer_email, now)
        amount = calculate_discount(discount, subtotal)

        #canonical code from the record, never the caller's spelling
        self.repo.set_discount(cart.id, discount.code, discount.id, amount)
        self.repo.commit()

        logger.info(f"Applied discount {discount.code} to cart {cart.id}: {amount} cents")

        return {
            "discount": discount_view(discount, amount),
            "totals": totals(subtotal, amount),
        }

    def remove_discount(self, store_id: str, cart_id: str, now: datetime | None = None) -> Dict[str, Any]:
        now = now or utcnow()

        cart = self._load(store_id, cart_id)
        require_open(cart, now)

        self.repo.clear_discount(cart.id)
        self.repo.commit()

        subtotal = subtotal_of(self.repo.get_cart_items(cart.id))

        logger.info(f"Removed discount from cart {cart.id}")

        return {"discount": None, "totals": totals(subtotal, 0)}

    #shared with checkout
    def refresh_discount(
        self,
        cart: CartModel,
        subtotal_cents: int,
        now: datetime,
        persist_amount: bool,
    ) -> tuple[DiscountModel | None, int]:
        """
        Re-validates the cart's attached discount against the current subtotal.
        An ineligible or deleted discount is detached silently. Does not commit.
        """
        if not cart.discount_id:
            return None, 0

        discount = self.discounts.get_by_id(cart.store_id, cart.discount_id)

        if discount is None or not self.discounts.try_validate(discount, subtotal_cents, cart.customer_email, now):
            logger.info(f"Detaching discount {cart.discount_code} from cart {cart.id}")
            self.repo.clear_discount(cart.id)
            return None, 0

        amount = calculate_discount(discount, subtotal_cents)
        if persist_amount:
            self.repo.set_discount(cart.id, discount.code, discount.id, amount)
        return discount, amount

    def _load(self, store_id: str, cart_id: str) -> CartModel:
        cart = self.repo.get_cart(cart_id, store_id)
        if not cart:
            raise NotFound("Cart not found")
        return cart

    def _view(self, cart: CartModel, items: list[CartItemModel], discount, amount: int) -> Dict[str, Any]:
        subtotal = subtotal_of(items)
        return {
            "id": cart.id,
            "status": cart.status,
            "currency": cart.currency,
            "customer_email": cart.customer_email,
            "items": [
                {
                    "sku": i.sku,
                    "title": i.title,
                    "qty": i.qty,
                    "unit_price_cents": i.unit_price_cents,
                }
                for i in items
            ],
            "discount": discount_view(discount, amount),
            "totals": totals(subtotal, amount),
            "expires_at": cart.expires_at,
        }
