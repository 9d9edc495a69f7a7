# shopcore/repos/order_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from shopcore.data.models.order import OrderModel, RefundModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str, store_id: str | None = None) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.id == order_id)
        if store_id is not None:
            stmt = stmt.where(OrderModel.store_id == store_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_cart(self, cart_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.cart_id == cart_id)
        ).scalar_one_or_none()

    def list_orders(self, store_id: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.store_id == store_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.number.desc())
            ).scalars()
        )

    def update_order(self, order: OrderModel, **fields) -> OrderModel:
        for key, value in fields.items():
            setattr(order, key, value)
        self.db.commit()
        self.db.refresh(order)
        return order

    def add_refund(self, refund: RefundModel) -> RefundModel:
        self.db.add(refund)
        return refund
