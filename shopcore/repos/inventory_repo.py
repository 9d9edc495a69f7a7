# shopcore/repos/inventory_repo.py
from datetime import datetime

from sqlalchemy import select, update, case
from sqlalchemy.orm import Session

from shopcore.data.models.inventory import InventoryModel, InventoryLogModel
from shopcore.domain.enums import InventoryLogReason


class InventoryRepo:
    """
    Every mutation is a single UPDATE whose WHERE clause carries the
    precondition; rowcount tells the caller whether it matched.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, store_id: str, sku: str) -> InventoryModel | None:
        #bulk updates bypass the identity map, so always reload the row
        return self.db.execute(
            select(InventoryModel)
            .where(*self._key(store_id, sku))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_for_store(self, store_id: str) -> list[InventoryModel]:
        return list(
            self.db.execute(
                select(InventoryModel)
                .where(InventoryModel.store_id == store_id)
                .order_by(InventoryModel.sku)
            ).scalars()
        )

    def _key(self, store_id: str, sku: str):
        return (InventoryModel.store_id == store_id, InventoryModel.sku == sku)

    def try_reserve(self, store_id: str, sku: str, qty: int, now: datetime) -> int:
        result = self.db.execute(
            update(InventoryModel)
            .where(
                *self._key(store_id, sku),
                InventoryModel.on_hand - InventoryModel.reserved >= qty,
            )
            .values(reserved=InventoryModel.reserved + qty, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def decrement_reserved(self, store_id: str, sku: str, qty: int, now: datetime) -> int:
        result = self.db.execute(
            update(InventoryModel)
            .where(*self._key(store_id, sku))
            .values(
                reserved=case(
                    (InventoryModel.reserved > qty, InventoryModel.reserved - qty),
                    else_=0,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def debit(self, store_id: str, sku: str, qty: int, now: datetime) -> int:
        result = self.db.execute(
            update(InventoryModel)
            .where(*self._key(store_id, sku))
            .values(
                on_hand=InventoryModel.on_hand - qty,
                reserved=case(
                    (InventoryModel.reserved > qty, InventoryModel.reserved - qty),
                    else_=0,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def shift_on_hand(self, store_id: str, sku: str, delta: int, now: datetime) -> int:
        result = self.db.execute(
            update(InventoryModel)
            .where(
                *self._key(store_id, sku),
                InventoryModel.on_hand + delta >= InventoryModel.reserved,
                InventoryModel.on_hand + delta >= 0,
            )
            .values(on_hand=InventoryModel.on_hand + delta, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def create(self, store_id: str, sku: str, on_hand: int, now: datetime) -> InventoryModel:
        record = InventoryModel(store_id=store_id, sku=sku, on_hand=on_hand, reserved=0, updated_at=now)
        self.db.add(record)
        self.db.flush()
        return record

    def add_log(
        self,
        store_id: str,
        sku: str,
        delta: int,
        reason: InventoryLogReason,
        now: datetime,
        note: str | None = None,
    ) -> InventoryLogModel:
        entry = InventoryLogModel(
            store_id=store_id,
            sku=sku,
            delta=delta,
            reason=reason.value,
            note=note,
            created_at=now,
        )
        self.db.add(entry)
        return entry

    def get_logs(self, store_id: str, sku: str) -> list[InventoryLogModel]:
        return list(
            self.db.execute(
                select(InventoryLogModel)
                .where(InventoryLogModel.store_id == store_id, InventoryLogModel.sku == sku)
                .order_by(InventoryLogModel.id)
            ).scalars()
        )
