"""
Stripe webhook receiver.

Status codes matter to Stripe:
  - 400 for a bad signature: never retried, and never should be
  - 500 for a processing failure: Stripe redelivers with backoff
  - 200 {"received": true} for everything else, including payloads we
    deliberately drop
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.errors import KatagakiError
from katagaki.core.logging import get_logger
from katagaki.core.metrics import record_webhook
from katagaki.db.session import get_db
from katagaki.infrastructure.stripe_gateway import PaymentGateway, get_payment_gateway
from katagaki.services.cache_service import invalidate_title_cache
from katagaki.services.entitlement_service import GRANTED
from katagaki.services.webhook_service import parse_event, process_event

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payload = await request.body()

    try:
        gateway.verify_signature(payload, stripe_signature)
    except KatagakiError:
        record_webhook("unknown", "invalid_signature")
        raise

    event = parse_event(payload)
    if event is None:
        return {"received": True}

    try:
        outcome = await process_event(db, event)
    except Exception as e:
        await db.rollback()
        logger.exception("webhook_processing_failed", event_id=event.id, event_type=event.type)
        record_webhook(event.type, "failed")
        message = e.message if isinstance(e, KatagakiError) else str(e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": message or "Webhook handler error"},
        )

    if outcome == GRANTED:
        await invalidate_title_cache()
    return {"received": True}
