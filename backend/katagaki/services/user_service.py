"""
User profile and role administration.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.errors import ForbiddenError
from katagaki.core.logging import get_logger
from katagaki.core.security import Caller
from katagaki.models import Right, User, UserRole
from katagaki.schemas.user import AdminUserResponse, ProfileUpdate
from katagaki.services import entity_store
from katagaki.services.entity_store import translate_store_errors

logger = get_logger(__name__)

# Fields a user may clear by sending null
_NULLABLE_PROFILE_FIELDS = {"public_profile_text"}


async def update_profile(db: AsyncSession, caller: Caller, data: ProfileUpdate) -> User:
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_PROFILE_FIELDS
    }
    user = await entity_store.users(db).update(caller.user_id, **changes)
    logger.info("profile_updated", user_id=caller.user_id, fields=sorted(changes))
    return user


async def list_users_with_title_counts(db: AsyncSession) -> list[AdminUserResponse]:
    """All users with the number of active rights each holds."""
    users = await entity_store.users(db).list_all()
    with translate_store_errors("rights.count_by_user"):
        result = await db.execute(
            select(Right.user_id, func.count(Right.right_id))
            .where(Right.is_active.is_(True))
            .group_by(Right.user_id)
        )
    counts = dict(result.all())
    return [
        AdminUserResponse.model_validate(user).model_copy(
            update={"titles_count": counts.get(user.user_id, 0)}
        )
        for user in users
    ]


async def change_role(db: AsyncSession, admin: Caller, target_user_id: str, role: UserRole) -> User:
    if target_user_id == admin.user_id:
        raise ForbiddenError("Administrators cannot change their own role")

    user = await entity_store.users(db).update(target_user_id, role=role.value)
    logger.info("user_role_changed", user_id=target_user_id, role=role.value, changed_by=admin.user_id)
    return user
