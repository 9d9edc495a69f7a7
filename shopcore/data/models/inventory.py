from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, CheckConstraint

from shopcore.data.database import Base, UTCDateTime


class InventoryModel(Base):
    __tablename__ = "inventory"

    store_id = Column(String(36), ForeignKey("stores.id"), primary_key=True)
    sku = Column(String, primary_key=True)

    on_hand = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("reserved <= on_hand", name="ck_inventory_reserved_le_on_hand"),
    )

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


class InventoryLogModel(Base):
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    sku = Column(String, nullable=False)

    delta = Column(Integer, nullable=False)
    reason = Column(String(20), nullable=False)
    note = Column(String, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
