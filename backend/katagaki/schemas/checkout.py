"""
Wire schemas for checkout initiation and payment webhooks.

Checkout uses camelCase on the wire ({titleId, titleName, price} ->
{sessionId, url}); webhook payloads follow Stripe's event shape.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CheckoutSessionCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title_id: str = Field(..., min_length=1, max_length=32)
    # Informational only; the stored title is authoritative
    title_name: Optional[str] = None
    price: Optional[int] = None


class CheckoutSessionResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    url: Optional[str]


class StripeEventData(BaseModel):
    object_: dict[str, Any] = Field(alias="object")


class StripeEvent(BaseModel):
    id: str
    type: str
    data: StripeEventData


class CompletedCheckoutSession(BaseModel):
    """The part of a Checkout Session object the entitlement needs."""

    id: str
    metadata: Optional[dict[str, Optional[str]]] = None
    payment_status: Optional[str] = None

    @property
    def title_id(self) -> Optional[str]:
        return (self.metadata or {}).get("titleId") or None

    @property
    def user_id(self) -> Optional[str]:
        return (self.metadata or {}).get("userId") or None
