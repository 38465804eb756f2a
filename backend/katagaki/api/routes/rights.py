"""
Held rights: the caller's entitlements and admin revocation.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import Caller, get_caller, require_admin
from katagaki.db.session import get_db
from katagaki.schemas.right import HeldRightResponse, RightResponse
from katagaki.services import entitlement_service

router = APIRouter(prefix="/rights", tags=["Rights"])
admin_router = APIRouter(prefix="/admin/rights", tags=["Admin: Rights"])


@router.get("/mine", response_model=list[HeldRightResponse])
async def list_my_rights(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Every right the caller holds, classified active / expiring_soon / expired / revoked."""
    return await entitlement_service.list_held_rights(db, caller)


@admin_router.post("/{right_id}/revoke", response_model=RightResponse)
async def revoke_right_endpoint(
    right_id: str,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await entitlement_service.revoke_right(db, right_id, admin)
