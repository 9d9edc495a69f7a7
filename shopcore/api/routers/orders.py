# shopcore/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shopcore.api import get_processor_factory, get_store_id, to_http
from shopcore.data.database import get_db
from shopcore.domain.errors import ServiceError
from shopcore.domain.schemas import (
    ManualOrderIn,
    OrderListOut,
    OrderOut,
    OrderUpdateIn,
    RefundIn,
    RefundOut,
)
from shopcore.services.order_service import OrderService

router = APIRouter(prefix="/v1/orders", tags=["orders"])


def get_service(db: Session, processor_factory=None):
    if processor_factory is None:
        return OrderService(db)
    return OrderService(db, processor_factory=processor_factory)


@router.get("/", response_model=OrderListOut)
def list_orders(
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    return {"items": get_service(db).list_orders(store_id)}


@router.post("/test", response_model=OrderOut, status_code=201)
def create_test_order(
    payload: ManualOrderIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    """
    Creates a paid order without the payment processor, for local testing.
    """
    try:
        return get_service(db).create_test_order(
            store_id,
            payload.customer_email,
            [item.model_dump() for item in payload.items],
            payload.discount_code,
        )
    except ServiceError as e:
        raise to_http(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).get_order(store_id, order_id)
    except ServiceError as e:
        raise to_http(e)


@router.patch("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: str,
    payload: OrderUpdateIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).update_status(
            store_id, order_id, payload.status, payload.tracking_number
        )
    except ServiceError as e:
        raise to_http(e)


@router.post("/{order_id}/refund", response_model=RefundOut)
def refund_order(
    order_id: str,
    payload: RefundIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
    processor_factory=Depends(get_processor_factory),
):
    try:
        return get_service(db, processor_factory).refund(store_id, order_id, payload.amount_cents)
    except ServiceError as e:
        raise to_http(e)
