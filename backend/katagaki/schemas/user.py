"""
Pydantic schemas for user profiles and role administration.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from katagaki.models.user import UserRole


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    is_profile_public: Optional[bool] = None
    public_profile_text: Optional[str] = Field(None, max_length=1000)

    model_config = {"extra": "forbid"}


class RoleUpdate(BaseModel):
    role: UserRole


class UserResponse(BaseModel):
    user_id: str
    display_name: str
    email: str
    role: UserRole
    is_profile_public: bool
    public_profile_text: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminUserResponse(UserResponse):
    titles_count: int = 0
