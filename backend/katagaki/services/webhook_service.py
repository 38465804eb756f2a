"""
Payment event handling, run only after the signature has been verified.

Only `checkout.session.completed` has side effects. Payloads that are
authenticated but unusable (bad JSON, missing metadata, title gone) are
logged and acknowledged: redelivering them would never succeed and would
only clog the webhook channel.
"""

from typing import Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.logging import get_logger
from katagaki.core.metrics import record_entitlement, record_webhook
from katagaki.schemas.checkout import CompletedCheckoutSession, StripeEvent
from katagaki.services.entitlement_service import grant_right

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
LOGGED_ONLY = {"payment_intent.succeeded", "payment_intent.payment_failed"}


def parse_event(payload: Union[bytes, str]) -> Optional[StripeEvent]:
    try:
        return StripeEvent.model_validate_json(payload)
    except ValidationError as e:
        logger.error("webhook_payload_malformed", errors=e.error_count())
        record_webhook("unknown", "malformed")
        return None


async def handle_checkout_completed(db: AsyncSession, event: StripeEvent) -> str:
    try:
        session = CompletedCheckoutSession.model_validate(event.data.object_)
    except ValidationError:
        logger.error("webhook_session_malformed", event_id=event.id)
        record_entitlement("missing_metadata")
        return "malformed"

    if not session.title_id or not session.user_id:
        logger.error("webhook_metadata_missing", event_id=event.id, session_id=session.id)
        record_entitlement("missing_metadata")
        return "missing_metadata"

    outcome = await grant_right(
        db,
        title_id=session.title_id,
        user_id=session.user_id,
        session_id=session.id,
    )
    return outcome.result


async def process_event(db: AsyncSession, event: StripeEvent) -> str:
    """Dispatch one verified event; returns the outcome label for logs/metrics."""
    logger.info("webhook_received", event_id=event.id, event_type=event.type)

    if event.type == CHECKOUT_COMPLETED:
        outcome = await handle_checkout_completed(db, event)
    elif event.type in LOGGED_ONLY:
        logger.info("payment_intent_event", event_type=event.type, object_id=event.data.object_.get("id"))
        outcome = "ignored"
    else:
        logger.info("webhook_unhandled_event", event_type=event.type)
        outcome = "ignored"

    record_webhook(event.type, outcome)
    return outcome
