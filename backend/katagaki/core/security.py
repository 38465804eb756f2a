"""
Caller identity and role.

Authentication itself belongs to the external identity provider: the bearer
token it issues is the caller's uid, and we trust it as-is once it is present
and well-formed. The role lives in our users table.

Handlers receive a `Caller` capability object through FastAPI dependencies
instead of reading any global auth state.
"""

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.errors import ForbiddenError, UnauthorizedError
from katagaki.db.session import get_db
from katagaki.models.user import UserRole
from katagaki.services.provisioning import get_or_provision_user

CALLER_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:@-]{1,128}$")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def parse_caller_id(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError()
    caller_id = credentials.credentials.strip()
    if not CALLER_ID_PATTERN.match(caller_id):
        raise UnauthorizedError("Malformed bearer credential")
    return caller_id


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Caller id only; no store access."""
    return parse_caller_id(credentials)


async def get_caller(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Caller with role, provisioning a user record on first sight."""
    user = await get_or_provision_user(db, user_id)
    return Caller(user_id=user.user_id, role=UserRole(user.role))


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError()
    return caller
