"""add_search_events_table

Revision ID: 3e8d5a1f7c20
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3e8d5a1f7c20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "search_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=16), nullable=False),
        sa.Column("session_id", sa.String(length=100), nullable=True),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("normalized_query", sa.String(length=200), nullable=False),
        sa.Column("search_type", sa.String(length=32), nullable=True),
        sa.Column("result_count", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(op.f("ix_search_events_event_type"), "search_events", ["event_type"], unique=False)
    op.create_index(op.f("ix_search_events_session_id"), "search_events", ["session_id"], unique=False)
    op.create_index(op.f("ix_search_events_normalized_query"), "search_events", ["normalized_query"], unique=False)
    op.create_index(op.f("ix_search_events_product_id"), "search_events", ["product_id"], unique=False)
    op.create_index(op.f("ix_search_events_created_at"), "search_events", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_search_events_created_at"), table_name="search_events")
    op.drop_index(op.f("ix_search_events_product_id"), table_name="search_events")
    op.drop_index(op.f("ix_search_events_normalized_query"), table_name="search_events")
    op.drop_index(op.f("ix_search_events_session_id"), table_name="search_events")
    op.drop_index(op.f("ix_search_events_event_type"), table_name="search_events")
    op.drop_table("search_events")
