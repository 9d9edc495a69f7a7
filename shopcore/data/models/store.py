from sqlalchemy import Column, Integer, String

from shopcore.data.database import Base


class StoreModel(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)

    stripe_secret_key = Column(String, nullable=True)
    stripe_webhook_secret = Column(String, nullable=True)

    #last issued order number, bumped with a conditional update
    order_seq = Column(Integer, nullable=False, default=0)
