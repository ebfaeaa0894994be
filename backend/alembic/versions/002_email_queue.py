"""Email queue: pending trip update emails, delivered in batches per (user, trip).

Index on created_at serves the "any row older than the queue duration" scan;
(user_id, trip_id) serves loading a whole group.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "email_queue",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("updater_id", sa.Integer(), nullable=False),
        sa.Column("update_type", sa.String(32), nullable=False),
        sa.Column("update_data", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["updater_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "update_type IN ('activity', 'transportation', 'lodging', 'checklist')",
            name="ck_email_queue_update_type",
        ),
    )
    op.create_index("ix_email_queue_created_at", "email_queue", ["created_at"], unique=False)
    op.create_index("ix_email_queue_user_trip", "email_queue", ["user_id", "trip_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_email_queue_user_trip", table_name="email_queue")
    op.drop_index("ix_email_queue_created_at", table_name="email_queue")
    op.drop_table("email_queue")
