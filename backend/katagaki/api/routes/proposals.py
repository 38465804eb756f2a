"""
Title proposal endpoints: users submit, admins review.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import Caller, get_caller, require_admin
from katagaki.db.session import get_db
from katagaki.models.proposal import ProposalStatus
from katagaki.schemas.proposal import ProposalCreate, ProposalResponse, ProposalReview, ProposalReviewResponse
from katagaki.services import proposal_service

router = APIRouter(prefix="/proposals", tags=["Proposals"])
admin_router = APIRouter(prefix="/admin/proposals", tags=["Admin: Proposals"])


@router.post("/", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED)
async def submit_proposal_endpoint(
    data: ProposalCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await proposal_service.submit_proposal(db, caller, data)


@router.get("/mine", response_model=list[ProposalResponse])
async def list_own_proposals_endpoint(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await proposal_service.list_own_proposals(db, caller)


@admin_router.get("/", response_model=list[ProposalResponse])
async def list_proposals_endpoint(
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await proposal_service.list_proposals(db)


@admin_router.post("/{proposal_id}/review", response_model=ProposalReviewResponse)
async def review_proposal_endpoint(
    proposal_id: str,
    review: ProposalReview,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve or reject a pending proposal. Reviewed proposals return 409.
    Approval returns prefill data for creating the title; it does not create one.
    """
    return await proposal_service.review_proposal(db, proposal_id, ProposalStatus(review.status), admin)
