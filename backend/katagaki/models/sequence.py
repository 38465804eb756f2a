"""
Counter row backing official-number allocation.

One row per prefix. `last_value` only ever increases, so numbers survive
title deletion and are never handed out twice.
"""

from sqlalchemy import CheckConstraint, Column, Integer, String

from katagaki.db.base import Base, TimestampMixin


class OfficialNumberSequence(Base, TimestampMixin):
    __tablename__ = "official_number_sequences"

    prefix = Column(String(16), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("last_value >= 0", name="check_sequence_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<OfficialNumberSequence(prefix={self.prefix}, last={self.last_value})>"
