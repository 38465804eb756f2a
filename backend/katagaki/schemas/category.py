from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name_ja: str = Field(..., min_length=1, max_length=100)
    sort_order: int = Field(0, ge=0)


class CategoryUpdate(BaseModel):
    name_ja: Optional[str] = Field(None, min_length=1, max_length=100)
    sort_order: Optional[int] = Field(None, ge=0)

    model_config = {"extra": "forbid"}


class CategoryResponse(BaseModel):
    category_id: str
    name_ja: str
    sort_order: int
    created_at: datetime

    model_config = {"from_attributes": True}
