from sqlalchemy import Column, Integer, ForeignKey, String
from sqlalchemy.orm import relationship

from shopcore.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String, nullable=False)

    #snapshots taken when the item was added
    title = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)

    #quantity this cart currently holds in the ledger
    reserved_qty = Column(Integer, nullable=False, default=0)

    cart = relationship("CartModel", back_populates="items")
