"""
Proposal model: a user's suggestion for a new title, reviewed by an admin.
"""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text

from katagaki.db.base import Base, utcnow, new_id


class ProposalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Proposal(Base):
    __tablename__ = "proposals"

    proposal_id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    proposed_title = Column(String(255), nullable=False)
    proposal_reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=ProposalStatus.PENDING.value)
    proposed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(128), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="check_proposal_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Proposal(id={self.proposal_id}, title={self.proposed_title}, status={self.status})>"
