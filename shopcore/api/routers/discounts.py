# shopcore/api/routers/discounts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shopcore.api import get_store_id, to_http
from shopcore.data.database import get_db, utcnow
from shopcore.domain.errors import ServiceError
from shopcore.domain.schemas import DiscountCreate, DiscountRead
from shopcore.services.discount_service import DiscountService

router = APIRouter(prefix="/v1/discounts", tags=["discounts"])


@router.post("/", response_model=DiscountRead, status_code=201)
def create_discount(
    payload: DiscountCreate,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return DiscountService(db).create_discount(store_id, payload.model_dump(), utcnow())
    except ServiceError as e:
        raise to_http(e)


@router.get("/", response_model=list[DiscountRead])
def list_discounts(
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    return DiscountService(db).list_discounts(store_id)


@router.get("/{discount_id}", response_model=DiscountRead)
def get_discount(
    discount_id: str,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    try:
        return DiscountService(db).get_discount(store_id, discount_id)
    except ServiceError as e:
        raise to_http(e)
