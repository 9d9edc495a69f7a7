# shopcore/repos/store_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shopcore.data.models.store import StoreModel
from shopcore.data.models.variant import VariantModel


class StoreRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_store(self, store_id: str) -> StoreModel | None:
        return self.db.get(StoreModel, store_id)

    def get_variant(self, store_id: str, sku: str) -> VariantModel | None:
        return self.db.execute(
            select(VariantModel).where(
                VariantModel.store_id == store_id,
                VariantModel.sku == sku,
            )
        ).scalar_one_or_none()

    def next_order_seq(self, store_id: str) -> int:
        #row lock on the store row serializes concurrent allocations until commit
        self.db.execute(
            update(StoreModel)
            .where(StoreModel.id == store_id)
            .values(order_seq=StoreModel.order_seq + 1)
        )
        return self.db.execute(
            select(StoreModel.order_seq).where(StoreModel.id == store_id)
        ).scalar_one()
