# shopcore/api/routers/inventory.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from shopcore.api import get_store_id, to_http
from shopcore.data.database import get_db, utcnow
from shopcore.domain.errors import ServiceError
from shopcore.domain.schemas import InventoryAdjustIn, InventoryOut
from shopcore.services.inventory_ledger import InventoryLedger

router = APIRouter(prefix="/v1/inventory", tags=["inventory"])


def _out(record):
    return {
        "store_id": record.store_id,
        "sku": record.sku,
        "on_hand": record.on_hand,
        "reserved": record.reserved,
        "available": record.available,
        "updated_at": record.updated_at,
    }


@router.get("/{sku}", response_model=InventoryOut)
def get_inventory(
    sku: str,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    record = InventoryLedger(db).get(store_id, sku)
    if not record:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Inventory not found"})
    return _out(record)


@router.post("/{sku}/adjust", response_model=InventoryOut)
def adjust_inventory(
    sku: str,
    payload: InventoryAdjustIn,
    store_id: str = Depends(get_store_id),
    db: Session = Depends(get_db),
):
    """
    Operator restock or correction; not part of the reservation protocol.
    """
    ledger = InventoryLedger(db)
    try:
        ledger.adjust(store_id, sku, payload.delta, payload.reason, utcnow())
        db.commit()
    except ServiceError as e:
        db.rollback()
        raise to_http(e)
    return _out(ledger.get(store_id, sku))
