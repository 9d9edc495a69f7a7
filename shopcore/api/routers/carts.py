# shopcore/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shopcore.api import get_processor_factory, get_store_id, to_http
from shopcore.data.database import get_db
from shopcore.domain.errors import ServiceError
from shopcore.domain.schemas import (
    ApplyDiscountIn,
    CartOut,
    CheckoutIn,
    CheckoutOut,
    CreateCartIn,
    DiscountTotalsOut,
    ReplaceItemsIn,
)
from shopcore.services.cart_service import CartService
from shopcore.services.checkout_service import CheckoutService

router = APIRouter(prefix="/v1/carts", tags=["carts"])


@router.post("/", response_model=CartOut)
def create_cart(
    payload: CreateCartIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return CartService(db).create_cart(store_id, payload.customer_email)
    except ServiceError as e:
        raise to_http(e)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: str,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return CartService(db).get_cart(store_id, cart_id)
    except ServiceError as e:
        raise to_http(e)


@router.post("/{cart_id}/items", response_model=CartOut)
def replace_items(
    cart_id: str,
    payload: ReplaceItemsIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return CartService(db).replace_items(
            store_id,
            cart_id,
            [item.model_dump() for item in payload.items],
        )
    except ServiceError as e:
        raise to_http(e)


@router.post("/{cart_id}/apply-discount", response_model=DiscountTotalsOut)
def apply_discount(
    cart_id: str,
    payload: ApplyDiscountIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return CartService(db).apply_discount(store_id, cart_id, payload.code)
    except ServiceError as e:
        raise to_http(e)


@router.delete("/{cart_id}/discount", response_model=DiscountTotalsOut)
def remove_discount(
    cart_id: str,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return CartService(db).remove_discount(store_id, cart_id)
    except ServiceError as e:
        raise to_http(e)


@router.post("/{cart_id}/checkout", response_model=CheckoutOut)
def checkout(
    cart_id: str,
    payload: CheckoutIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
    processor_factory=Depends(get_processor_factory),
):
    svc = CheckoutService(db, processor_factory=processor_factory)
    try:
        return svc.checkout(
            store_id,
            cart_id,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
            collect_shipping=payload.collect_shipping,
            shipping_countries=payload.shipping_countries,
            shipping_options=payload.shipping_options,
        )
    except ServiceError as e:
        raise to_http(e)
