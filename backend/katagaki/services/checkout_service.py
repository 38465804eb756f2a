"""
Checkout initiation.

The price charged is always the stored `base_price`. Clients still send the
price they displayed; a mismatch means the page is stale (or the request was
tampered with) and is refused rather than charged.
"""

from typing import Optional
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.config import get_settings
from katagaki.core.errors import ConflictError
from katagaki.core.logging import get_logger
from katagaki.core.metrics import record_checkout
from katagaki.infrastructure.stripe_gateway import PaymentGateway
from katagaki.schemas.checkout import CheckoutSessionCreate, CheckoutSessionResponse
from katagaki.services import entity_store

logger = get_logger(__name__)


def resolve_origin(origin: Optional[str], referer: Optional[str]) -> str:
    """Base URL for the redirect targets: Origin, else Referer's scheme+host, else config."""
    if origin:
        return origin.rstrip("/")
    if referer:
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return get_settings().PUBLIC_BASE_URL.rstrip("/")


async def open_checkout_session(
    db: AsyncSession,
    gateway: PaymentGateway,
    *,
    caller_id: str,
    request: CheckoutSessionCreate,
    origin: str,
) -> CheckoutSessionResponse:
    gateway.require_secret_key()

    title = await entity_store.titles(db).require(request.title_id)

    if not title.is_purchasable:
        record_checkout("rejected")
        raise ConflictError(
            "Title is not available for purchase",
            details={"status": title.status, "purchased_count": title.purchased_count,
                     "purchasable_limit": title.purchasable_limit},
        )

    if request.price is not None and request.price != title.base_price:
        logger.warning(
            "checkout_price_mismatch",
            title_id=title.title_id,
            client_price=request.price,
            price=title.base_price,
            user_id=caller_id,
        )
        record_checkout("rejected")
        raise ConflictError(
            "Price does not match the current title price",
            details={"reason": "price_mismatch", "price": title.base_price},
        )

    try:
        session = await gateway.create_checkout_session(
            title_id=title.title_id,
            title_name=title.name,
            unit_amount=title.base_price,
            user_id=caller_id,
            origin=origin,
        )
    except Exception:
        record_checkout("upstream_error")
        raise

    record_checkout("created")
    logger.info(
        "checkout_session_created",
        session_id=session.id,
        title_id=title.title_id,
        user_id=caller_id,
        amount=title.base_price,
    )
    return CheckoutSessionResponse(session_id=session.id, url=session.url)
