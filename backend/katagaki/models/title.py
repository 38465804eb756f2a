"""
Title model with purchase inventory tracking.

Key design decisions:
- `purchased_count` is denormalized (avoids COUNT over rights on every read)
- `version` column enables optimistic locking for concurrent purchases
- `official_number` is unique and never changes after creation
- `category_id` is a plain reference with no foreign key; categories can be
  deleted while titles still point at them
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String, Text

from katagaki.db.base import Base, TimestampMixin, new_id


class TitleStatus(str, enum.Enum):
    DRAFT = "draft"
    AVAILABLE = "available"
    SOLD_OUT = "sold_out"


class PriceTier(str, enum.Enum):
    EXCLUSIVE = "Exclusive"
    STANDARD = "Standard"
    PREMIUM = "Premium"


class Title(Base, TimestampMixin):
    __tablename__ = "titles"

    title_id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category_id = Column(String(32), nullable=True, index=True)
    base_price = Column(Integer, nullable=False)
    price_tier = Column(String(20), nullable=False, default=PriceTier.STANDARD.value)
    is_official = Column(Boolean, nullable=False, default=False)
    official_number = Column(String(32), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default=TitleStatus.DRAFT.value)
    purchasable_limit = Column(Integer, nullable=False, default=1)
    purchased_count = Column(Integer, nullable=False, default=0)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("base_price > 0", name="check_title_base_price_positive"),
        CheckConstraint("purchasable_limit >= 1", name="check_title_limit_positive"),
        CheckConstraint("purchased_count >= 0", name="check_title_purchased_non_negative"),
        # Final safety net against overselling
        CheckConstraint("purchased_count <= purchasable_limit", name="check_title_purchased_lte_limit"),
        CheckConstraint(
            "status IN ('draft', 'available', 'sold_out')", name="check_title_status"
        ),
        CheckConstraint(
            "price_tier IN ('Exclusive', 'Standard', 'Premium')", name="check_title_price_tier"
        ),
        Index("ix_titles_created_at", "created_at"),
    )

    @property
    def is_purchasable(self) -> bool:
        return (
            self.status == TitleStatus.AVAILABLE.value
            and self.purchased_count < self.purchasable_limit
        )

    def __repr__(self) -> str:
        return (
            f"<Title(id={self.title_id}, number={self.official_number}, "
            f"sold={self.purchased_count}/{self.purchasable_limit}, status={self.status})>"
        )
