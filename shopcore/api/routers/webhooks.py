# shopcore/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from shopcore.api import get_notifier_factory, to_http
from shopcore.data.database import get_db
from shopcore.domain.errors import ServiceError
from shopcore.domain.schemas import WebhookAck
from shopcore.services.webhook_service import WebhookService

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
    db: Session = Depends(get_db),
    notifier_factory=Depends(get_notifier_factory),
):
    """
    Payment-completion events from the processor.
    Redelivery of an already processed event is a no-op success.
    """
    #signature is computed over the raw bytes
    body = await request.body()

    svc = WebhookService(db, notifier=notifier_factory(db))
    try:
        #database work and dispatch are blocking, keep them off the event loop
        return await run_in_threadpool(svc.handle_stripe_event, body, stripe_signature)
    except ServiceError as e:
        raise to_http(e)
