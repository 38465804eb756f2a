"""
Pydantic schemas for title proposals and their review.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from katagaki.models.proposal import ProposalStatus


class ProposalCreate(BaseModel):
    proposed_title: str = Field(..., min_length=1, max_length=255)
    proposal_reason: str = Field(..., min_length=1, max_length=5000)


class ProposalReview(BaseModel):
    status: Literal["approved", "rejected"]


class ProposalResponse(BaseModel):
    proposal_id: str
    user_id: str
    proposed_title: str
    proposal_reason: str
    status: ProposalStatus
    proposed_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    model_config = {"from_attributes": True}


class TitlePrefill(BaseModel):
    """Data an admin can use to create a title from an approved proposal."""

    proposal_id: str
    name: str


class ProposalReviewResponse(BaseModel):
    proposal: ProposalResponse
    title_prefill: Optional[TitlePrefill] = None
