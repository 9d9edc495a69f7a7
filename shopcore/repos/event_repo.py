# shopcore/repos/event_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from shopcore.data.models.event import EventModel


class EventRepo:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, stripe_event_id: str) -> bool:
        return self.db.execute(
            select(EventModel.id).where(EventModel.stripe_event_id == stripe_event_id)
        ).first() is not None

    def add_event(self, event: EventModel) -> EventModel:
        self.db.add(event)
        return event
