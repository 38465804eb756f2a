"""
First-sight user provisioning.

Kept apart from user_service so core.security can depend on it without
pulling in modules that themselves need `Caller`.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.config import get_settings
from katagaki.core.logging import get_logger
from katagaki.models import User, UserRole
from katagaki.services import entity_store

logger = get_logger(__name__)


async def get_or_provision_user(db: AsyncSession, user_id: str) -> User:
    """
    Return the stored user, creating a plain `user` record the first time an
    identity-provider uid shows up. Uids listed in ADMIN_USER_IDS start
    out as admins so a fresh deployment has someone who can promote others.
    """
    store = entity_store.users(db)
    user = await store.get(user_id)
    if user is not None:
        return user

    role = UserRole.ADMIN if user_id in get_settings().ADMIN_USER_IDS else UserRole.USER
    try:
        user = await store.create(user_id=user_id, role=role.value)
    except IntegrityError:
        # Concurrent first request provisioned it
        await db.rollback()
        return await store.require(user_id)

    logger.info("user_provisioned", user_id=user_id, role=role.value)
    return user
