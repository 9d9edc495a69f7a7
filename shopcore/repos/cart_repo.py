# shopcore/repos/cart_repo.py
from datetime import datetime

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from shopcore.data.models.cart import CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.domain.enums import CartStatus


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart(self, cart_id: str, store_id: str | None = None) -> CartModel | None:
        stmt = select(CartModel).where(CartModel.id == cart_id)
        if store_id is not None:
            stmt = stmt.where(CartModel.store_id == store_id)
        return self.db.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()

    def get_cart_items(self, cart_id: str) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.sku, CartItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def replace_items(self, cart_id: str, items: list[CartItemModel]) -> None:
        self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        self.db.add_all(items)
        self.db.flush()
        #drop stale collection state left by the bulk delete
        cart = self.db.get(CartModel, cart_id)
        if cart is not None:
            self.db.expire(cart, ["items"])

    def set_discount(self, cart_id: str, code: str | None, discount_id: str | None, amount_cents: int) -> None:
        self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(discount_code=code, discount_id=discount_id, discount_amount_cents=amount_cents)
            .execution_options(synchronize_session="fetch")
        )

    def clear_discount(self, cart_id: str) -> None:
        self.set_discount(cart_id, None, None, 0)

    def mark_checked_out(self, cart_id: str, session_id: str, discount_amount_cents: int) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.status == CartStatus.OPEN.value)
            .values(
                status=CartStatus.CHECKED_OUT.value,
                stripe_checkout_session_id=session_id,
                discount_amount_cents=discount_amount_cents,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def mark_expired(self, cart_id: str) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.status == CartStatus.OPEN.value)
            .values(status=CartStatus.EXPIRED.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def find_expired(self, now: datetime) -> list[CartModel]:
        return list(
            self.db.execute(
                select(CartModel)
                .where(
                    CartModel.status == CartStatus.OPEN.value,
                    CartModel.expires_at < now,
                )
                .order_by(CartModel.expires_at)
            ).scalars()
        )

    def hold(self, item_id: int, qty: int) -> None:
        self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(reserved_qty=qty)
            .execution_options(synchronize_session="fetch")
        )

    def claim_held(self, item_id: int) -> int:
        """
        Zeroes the item's held quantity and returns what was held, or 0
        when someone else already claimed it.
        """
        held = self.db.execute(
            select(CartItemModel.reserved_qty).where(CartItemModel.id == item_id)
        ).scalar_one_or_none()
        if not held:
            return 0

        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id, CartItemModel.reserved_qty == held)
            .values(reserved_qty=0)
            .execution_options(synchronize_session="fetch")
        )
        return held if result.rowcount == 1 else 0
