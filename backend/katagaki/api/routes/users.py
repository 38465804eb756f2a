"""
Profile and role endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.security import Caller, get_caller, require_admin
from katagaki.db.session import get_db
from katagaki.schemas.user import AdminUserResponse, ProfileUpdate, RoleUpdate, UserResponse
from katagaki.services import entity_store, user_service

router = APIRouter(prefix="/users", tags=["Users"])
admin_router = APIRouter(prefix="/admin/users", tags=["Admin: Users"])


@router.get("/me", response_model=UserResponse)
async def get_my_profile(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await entity_store.users(db).require(caller.user_id)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    data: ProfileUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(db, caller, data)


@admin_router.get("/", response_model=list[AdminUserResponse])
async def list_users_endpoint(
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users_with_title_counts(db)


@admin_router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role_endpoint(
    user_id: str,
    data: RoleUpdate,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Promote or demote another user. Changing your own role is forbidden."""
    return await user_service.change_role(db, admin, user_id, data.role)
