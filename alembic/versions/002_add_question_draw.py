"""add shuffle_questions to assessments and question_ids to attempts

Revision ID: 002_add_question_draw
Revises: 001_initial_schema
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "002_add_question_draw"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "assessments",
        sa.Column("shuffle_questions", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column("attempts", sa.Column("question_ids", sa.JSON(), nullable=True))


def downgrade() -> None:
    op.drop_column("attempts", "question_ids")
    op.drop_column("assessments", "shuffle_questions")
