"""Initial schema: users, categories, titles, rights, proposals, official number sequence.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False, server_default="ユーザー"),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", sa.String(10), nullable=False, server_default="user"),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("public_profile_text", sa.Text(), nullable=True),
        sa.Column("is_profile_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'user')", name="check_user_role"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "categories",
        sa.Column("category_id", sa.String(32), primary_key=True),
        sa.Column("name_ja", sa.String(100), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("ix_categories_sort_order", "categories", ["sort_order"])

    op.create_table(
        "titles",
        sa.Column("title_id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        # No FK: categories may be deleted while titles still reference them
        sa.Column("category_id", sa.String(32), nullable=True),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("price_tier", sa.String(20), nullable=False, server_default="Standard"),
        sa.Column("is_official", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("official_number", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("purchasable_limit", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("purchased_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("official_number", name="uq_titles_official_number"),
        sa.CheckConstraint("base_price > 0", name="check_title_base_price_positive"),
        sa.CheckConstraint("purchasable_limit >= 1", name="check_title_limit_positive"),
        sa.CheckConstraint("purchased_count >= 0", name="check_title_purchased_non_negative"),
        sa.CheckConstraint("purchased_count <= purchasable_limit", name="check_title_purchased_lte_limit"),
        sa.CheckConstraint("status IN ('draft', 'available', 'sold_out')", name="check_title_status"),
        sa.CheckConstraint(
            "price_tier IN ('Exclusive', 'Standard', 'Premium')", name="check_title_price_tier"
        ),
    )
    op.create_index("ix_titles_category_id", "titles", ["category_id"])
    # Catalog pages list newest first
    op.create_index("ix_titles_created_at", "titles", ["created_at"])

    op.create_table(
        "rights",
        sa.Column("right_id", sa.String(32), primary_key=True),
        sa.Column("title_id", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        *_timestamps(),
        # Redelivered checkout.session.completed events hit this, not a second grant
        sa.UniqueConstraint("stripe_session_id", name="uq_rights_stripe_session_id"),
        sa.CheckConstraint("end_date > start_date", name="check_right_end_after_start"),
    )
    op.create_index("ix_rights_title_id", "rights", ["title_id"])
    op.create_index("ix_rights_user_id", "rights", ["user_id"])
    # "My rights" and holder listings filter on both
    op.create_index("ix_rights_user_active", "rights", ["user_id", "is_active"])

    op.create_table(
        "proposals",
        sa.Column("proposal_id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("proposed_title", sa.String(255), nullable=False),
        sa.Column("proposal_reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("proposed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(128), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="check_proposal_status"),
    )
    op.create_index("ix_proposals_user_id", "proposals", ["user_id"])
    op.create_index("ix_proposals_proposed_at", "proposals", ["proposed_at"])

    sequences = op.create_table(
        "official_number_sequences",
        sa.Column("prefix", sa.String(16), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("last_value >= 0", name="check_sequence_non_negative"),
    )
    op.bulk_insert(sequences, [{"prefix": "ktgk_", "last_value": 0}])


def downgrade() -> None:
    op.drop_table("official_number_sequences")
    op.drop_table("proposals")
    op.drop_table("rights")
    op.drop_table("titles")
    op.drop_table("categories")
    op.drop_table("users")
