# shopcore/services/expiry_service.py
from datetime import datetime

from sqlalchemy.orm import Session

from shopcore.data.database import utcnow
from shopcore.repos.cart_repo import CartRepo
from shopcore.services.inventory_ledger import InventoryLedger
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


class ExpiryService:
    """
    Reclaims inventory held by carts that stayed open past expires_at.

    Only open carts are swept. A checked_out cart whose payment is never
    completed keeps its reservation; changing that would pull stock from
    under a payment that may still succeed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.ledger = InventoryLedger(db)

    def sweep(self, now: datetime | None = None) -> int:
        now = now or utcnow()

        carts = self.repo.find_expired(now)
        logger.info(f"Found {len(carts)} carts to expire")

        expired = 0
        for cart in carts:
            #conditional on status=open, a concurrent checkout or sweep wins cleanly
            if self.repo.mark_expired(cart.id) == 0:
                self.repo.rollback()
                continue

            released = 0
            for item in self.repo.get_cart_items(cart.id):
                qty = self.repo.claim_held(item.id)
                if qty:
                    self.ledger.release(cart.store_id, item.sku, qty, now)
                    released += qty

            self.repo.commit()
            expired += 1

            logger.info(f"Cart {cart.id} expired, released {released} unit(s)")

        logger.info(f"Released {expired} expired carts")
        return expired
