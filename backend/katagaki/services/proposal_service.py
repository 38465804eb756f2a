"""
Proposal service: user submissions and admin review.

Status machine: pending -> approved | rejected. Both outcomes are terminal.
The review is a single conditional UPDATE (WHERE status = 'pending'), so two
admins reviewing at once can't both win and a reviewed proposal never flips.

Approval does not create a title; it only hands back prefill data for the
admin's title form.
"""

from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.errors import ConflictError
from katagaki.core.logging import get_logger
from katagaki.core.security import Caller
from katagaki.models import Proposal, ProposalStatus
from katagaki.schemas.proposal import ProposalCreate, ProposalResponse, ProposalReviewResponse, TitlePrefill
from katagaki.services import entity_store
from katagaki.services.entity_store import translate_store_errors

logger = get_logger(__name__)


async def submit_proposal(db: AsyncSession, caller: Caller, data: ProposalCreate) -> Proposal:
    proposal = await entity_store.proposals(db).create(
        user_id=caller.user_id,
        proposed_title=data.proposed_title.strip(),
        proposal_reason=data.proposal_reason.strip(),
        status=ProposalStatus.PENDING.value,
    )
    logger.info("proposal_submitted", proposal_id=proposal.proposal_id, user_id=caller.user_id)
    return proposal


async def list_own_proposals(db: AsyncSession, caller: Caller) -> list[Proposal]:
    return await entity_store.proposals(db).query(user_id=caller.user_id)


async def list_proposals(db: AsyncSession) -> list[Proposal]:
    return await entity_store.proposals(db).list_all()


async def review_proposal(
    db: AsyncSession,
    proposal_id: str,
    decision: ProposalStatus,
    admin: Caller,
) -> ProposalReviewResponse:
    if decision == ProposalStatus.PENDING:
        raise ConflictError("A review must approve or reject")

    store = entity_store.proposals(db)
    proposal = await store.require(proposal_id)

    with translate_store_errors("Proposal.review"):
        result = await db.execute(
            update(Proposal)
            .where(
                Proposal.proposal_id == proposal_id,
                Proposal.status == ProposalStatus.PENDING.value,
            )
            .values(
                status=decision.value,
                reviewed_at=datetime.now(timezone.utc),
                reviewed_by=admin.user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            await db.refresh(proposal)
            raise ConflictError(
                "Proposal has already been reviewed",
                details={"status": proposal.status},
            )
        await db.commit()
        await db.refresh(proposal)

    logger.info("proposal_reviewed", proposal_id=proposal_id, status=decision.value, reviewed_by=admin.user_id)

    prefill = None
    if decision == ProposalStatus.APPROVED:
        prefill = TitlePrefill(proposal_id=proposal.proposal_id, name=proposal.proposed_title)
    return ProposalReviewResponse(proposal=ProposalResponse.model_validate(proposal), title_prefill=prefill)
