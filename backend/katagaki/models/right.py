"""
Right model: one user's time-bounded claim over one title.

Key design decisions:
- Unique `stripe_session_id` makes payment redelivery idempotent at the DB level
- No foreign keys to titles/users; rights outlive deleted titles
- Expiry is derived from `end_date` at read time, never written back
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, String

from katagaki.db.base import Base, TimestampMixin, new_id


class Right(Base, TimestampMixin):
    __tablename__ = "rights"

    right_id = Column(String(32), primary_key=True, default=new_id)
    title_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    stripe_session_id = Column(String(255), nullable=True, unique=True)

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="check_right_end_after_start"),
        Index("ix_rights_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Right(id={self.right_id}, title={self.title_id}, user={self.user_id}, active={self.is_active})>"
