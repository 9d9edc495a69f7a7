# shopcore/services/inventory_ledger.py
from datetime import datetime

from sqlalchemy.orm import Session

from shopcore.data.models.inventory import InventoryModel
from shopcore.domain.enums import InventoryLogReason
from shopcore.domain.errors import Conflict, InvalidRequest
from shopcore.repos.inventory_repo import InventoryRepo
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Per-(store, sku) on_hand/reserved counters.

    - reserve: conditional increment of reserved, the only concurrency guard
    - release: reserved down, floored at 0
    - sell: reservation becomes a permanent debit
    - adjust: operator correction of on_hand

    Nothing here commits; the calling service owns the transaction.
    """

    def __init__(self, db: Session):
        self.repo = InventoryRepo(db)

    def get(self, store_id: str, sku: str) -> InventoryModel | None:
        return self.repo.get(store_id, sku)

    def available(self, store_id: str, sku: str) -> int:
        record = self.repo.get(store_id, sku)
        if record is None:
            return 0
        return record.available

    def reserve(self, store_id: str, sku: str, qty: int, now: datetime) -> bool:
        if qty <= 0:
            raise InvalidRequest("Reservation quantity must be positive")

        #UPDATE ... SET reserved = reserved + qty WHERE on_hand - reserved >= qty
        reserved = self.repo.try_reserve(store_id, sku, qty, now) == 1

        if reserved:
            logger.info(f"Reserved {qty} x {sku} in store {store_id}")
        else:
            logger.info(f"Reservation of {qty} x {sku} in store {store_id} refused")
        return reserved

    def release(self, store_id: str, sku: str, qty: int, now: datetime) -> None:
        if qty <= 0:
            return

        self.repo.decrement_reserved(store_id, sku, qty, now)
        self.repo.add_log(store_id, sku, -qty, InventoryLogReason.RELEASE, now)
        logger.info(f"Released {qty} x {sku} in store {store_id}")

    def sell(self, store_id: str, sku: str, qty: int, now: datetime) -> None:
        if qty <= 0:
            raise InvalidRequest("Sale quantity must be positive")

        if self.repo.debit(store_id, sku, qty, now) == 0:
            logger.warning(f"Sale of {qty} x {sku} in store {store_id} hit no inventory record")
            return

        self.repo.add_log(store_id, sku, -qty, InventoryLogReason.SALE, now)
        logger.info(f"Sold {qty} x {sku} in store {store_id}")

    def adjust(self, store_id: str, sku: str, delta: int, reason: str | None, now: datetime) -> InventoryModel:
        if delta == 0:
            raise InvalidRequest("delta must be non-zero")

        record = self.repo.get(store_id, sku)

        if record is None:
            if delta < 0:
                raise Conflict(f"Cannot reduce stock below zero for SKU: {sku}")
            self.repo.create(store_id, sku, delta, now)
        elif self.repo.shift_on_hand(store_id, sku, delta, now) == 0:
            raise Conflict(f"Adjustment would leave on_hand below reserved for SKU: {sku}")

        self.repo.add_log(store_id, sku, delta, InventoryLogReason.ADJUSTMENT, now, note=reason)
        logger.info(f"Adjusted {sku} in store {store_id} by {delta} ({reason})")

        return self.repo.get(store_id, sku)
