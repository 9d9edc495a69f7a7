from sqlalchemy import Column, Integer, ForeignKey, String, UniqueConstraint

from shopcore.data.database import Base
from shopcore.domain.enums import VariantStatus


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    sku = Column(String, nullable=False)

    title = Column(String, nullable=False)
    price_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=VariantStatus.ACTIVE.value)

    __table_args__ = (UniqueConstraint("store_id", "sku", name="u_variant_store_sku"),)
