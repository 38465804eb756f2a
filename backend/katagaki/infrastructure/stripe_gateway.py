"""
Stripe integration: Checkout Session creation and webhook signature checks.
Separated from business logic so tests can swap in a fake gateway.
"""

import time
from dataclasses import dataclass
from typing import Optional, Union

import stripe
from starlette.concurrency import run_in_threadpool

from katagaki.core.config import Settings, get_settings
from katagaki.core.errors import ConfigurationError, SignatureInvalidError, UpstreamError
from katagaki.core.logging import get_logger
from katagaki.core.metrics import checkout_latency

logger = get_logger(__name__)

RIGHT_PRODUCT_DESCRIPTION = "年間使用権"


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


class PaymentGateway:
    """Thin wrapper over the stripe SDK with our error taxonomy."""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        currency: str = "jpy",
        webhook_tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.webhook_tolerance = webhook_tolerance

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            currency=settings.CHECKOUT_CURRENCY,
            webhook_tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        )

    def require_secret_key(self) -> str:
        if not self.secret_key:
            logger.error("stripe_secret_key_missing")
            raise ConfigurationError("Stripe configuration error: Missing secret key")
        return self.secret_key

    async def create_checkout_session(
        self,
        *,
        title_id: str,
        title_name: str,
        unit_amount: int,
        user_id: str,
        origin: str,
    ) -> CheckoutSession:
        """
        One-off payment for a single annual right. The metadata carries
        everything the webhook needs to build the Right later.
        """
        api_key = self.require_secret_key()
        params = dict(
            api_key=api_key,
            mode="payment",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": title_name,
                            "description": RIGHT_PRODUCT_DESCRIPTION,
                        },
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{origin}/purchase/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/titles/{title_id}",
            client_reference_id=user_id,
            metadata={"titleId": title_id, "userId": user_id},
        )

        start = time.perf_counter()
        try:
            # The SDK call is blocking; keep it off the event loop
            session = await run_in_threadpool(stripe.checkout.Session.create, **params)
        except stripe.StripeError as e:
            logger.error(
                "stripe_checkout_failed",
                title_id=title_id,
                error=str(e),
                error_type=type(e).__name__,
                code=e.code,
                http_status=e.http_status,
            )
            raise UpstreamError(
                e.user_message or str(e) or "Failed to create checkout session",
                details={"type": type(e).__name__, "code": e.code},
            ) from e
        finally:
            checkout_latency.observe(time.perf_counter() - start)

        return CheckoutSession(id=session.id, url=session.url)

    def verify_signature(self, payload: Union[bytes, str], signature: Optional[str]) -> None:
        """Raise unless `signature` is a valid Stripe-Signature header for `payload`."""
        if not self.webhook_secret:
            logger.error("stripe_webhook_secret_missing")
            raise ConfigurationError("Stripe configuration error: Missing webhook secret")
        if not signature:
            raise SignatureInvalidError("No signature")
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        try:
            stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, self.webhook_tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise SignatureInvalidError(f"Webhook Error: {e.user_message or e}") from e


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency."""
    return PaymentGateway.from_settings(get_settings())
