"""
Pydantic schemas for rights and their derived read-time state.
"""

import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from katagaki.schemas.title import TitleResponse


class RightState(str, enum.Enum):
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    REVOKED = "revoked"


class RightResponse(BaseModel):
    right_id: str
    title_id: str
    user_id: str
    start_date: datetime
    end_date: datetime
    is_active: bool
    stripe_session_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class HeldRightResponse(RightResponse):
    state: RightState
    is_expired: bool
    is_expiring_soon: bool
    days_remaining: int
    # None when the title has been deleted since purchase
    title: Optional[TitleResponse] = None
