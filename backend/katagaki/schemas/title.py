"""
Pydantic schemas for title-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from katagaki.models.title import PriceTier, TitleStatus


class TitleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    category_id: Optional[str] = Field(None, max_length=32)
    base_price: int = Field(..., gt=0)
    price_tier: PriceTier = PriceTier.STANDARD
    is_official: bool = False
    status: Literal["draft", "available"] = "draft"
    purchasable_limit: int = Field(1, ge=1)
    # Set when the title is created from an approved proposal
    proposal_id: Optional[str] = None


class TitleUpdate(BaseModel):
    """Partial update. Counters and the official number are not editable."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    category_id: Optional[str] = Field(None, max_length=32)
    base_price: Optional[int] = Field(None, gt=0)
    price_tier: Optional[PriceTier] = None
    is_official: Optional[bool] = None
    status: Optional[TitleStatus] = None
    purchasable_limit: Optional[int] = Field(None, ge=1)

    model_config = {"extra": "forbid"}


class TitleResponse(BaseModel):
    title_id: str
    name: str
    description: str
    category_id: Optional[str]
    base_price: int
    price_tier: PriceTier
    is_official: bool
    official_number: str
    status: TitleStatus
    purchasable_limit: int
    purchased_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class TitleListResponse(BaseModel):
    titles: list[TitleResponse]
    total: int
    cached: bool = False


class TitleHolder(BaseModel):
    user_id: str
    display_name: str
    public_profile_text: Optional[str]
