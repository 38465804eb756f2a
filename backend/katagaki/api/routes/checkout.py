"""
Checkout initiation endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import get_current_user_id
from katagaki.db.session import get_db
from katagaki.infrastructure.stripe_gateway import PaymentGateway, get_payment_gateway
from katagaki.schemas.checkout import CheckoutSessionCreate, CheckoutSessionResponse
from katagaki.services.checkout_service import open_checkout_session, resolve_origin

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/sessions", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    body: CheckoutSessionCreate,
    user_id: str = Depends(get_current_user_id),
    origin: Optional[str] = Header(None),
    referer: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Open a Stripe Checkout Session for one annual right on a title.

    The charged amount is the title's stored base price; a client price that
    differs is refused with 409.
    """
    return await open_checkout_session(
        db,
        gateway,
        caller_id=user_id,
        request=body,
        origin=resolve_origin(origin, referer),
    )
