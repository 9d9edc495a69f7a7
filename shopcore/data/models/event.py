from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, Text

from shopcore.data.database import Base, UTCDateTime


class EventModel(Base):
    """Processed payment-processor events, kept for deduplication."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False)
    stripe_event_id = Column(String, nullable=False, unique=True, index=True)

    type = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
