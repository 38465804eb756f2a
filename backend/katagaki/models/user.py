"""
User model. Identity (the id) comes from the external identity provider;
this table stores the role and public profile.
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, String, Text

from katagaki.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    user_id = Column(String(128), primary_key=True)
    display_name = Column(String(100), nullable=False, default="ユーザー")
    email = Column(String(255), nullable=False, default="", index=True)
    role = Column(String(10), nullable=False, default=UserRole.USER.value)
    stripe_customer_id = Column(String(255), nullable=True)
    public_profile_text = Column(Text, nullable=True)
    is_profile_public = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(id={self.user_id}, role={self.role})>"
