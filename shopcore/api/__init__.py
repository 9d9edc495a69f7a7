# shopcore/api/__init__.py
from fastapi import Header, HTTPException

from shopcore.domain.errors import ServiceError
from shopcore.services.stripe_client import client_for_store


def to_http(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def get_store_id(x_store_id: str = Header(..., min_length=1)) -> str:
    #tenant comes from the auth layer in front of this service
    return x_store_id


def get_processor_factory():
    return client_for_store


def get_notifier_factory():
    from shopcore.services.notification_service import NotificationService

    return NotificationService
