"""
001 — property_confidence_scores: append-only score snapshots

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "property_confidence_scores",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("property_id", sa.String(128), nullable=False),

        sa.Column("calculation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("insurance_score", sa.Integer, nullable=False),
        sa.Column("buyer_score", sa.Integer, nullable=False),
        sa.Column("score_factors", JSONB, nullable=False),
        sa.Column("is_partial", sa.Boolean, nullable=False, server_default=sa.false()),

        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),

        sa.CheckConstraint("insurance_score BETWEEN 0 AND 1000", name="ck_confidence_insurance_range"),
        sa.CheckConstraint("buyer_score BETWEEN 0 AND 1000", name="ck_confidence_buyer_range"),
    )

    op.create_index("ix_property_confidence_scores_property_id", "property_confidence_scores", ["property_id"])
    op.create_index(
        "ix_confidence_scores_property_date",
        "property_confidence_scores",
        ["property_id", "calculation_date"],
    )


def downgrade() -> None:
    op.drop_table("property_confidence_scores")
