"""Pending trip update email: one row per (recipient, update), delivered in batches.

Rows are grouped by (user_id, trip_id). A group is sent once its oldest row is older than
EMAIL_QUEUE_DURATION_MS; all rows of that group go out in one email and are then deleted by id.
Rows are never updated after insert.

update_data: JSON text of the kind-specific payload merged with trip display fields
(trip_name, trip_destination, trip_link). Parsed back through tripmail.schemas.trip_updates.
"""
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from tripmail.db.base import Base

UPDATE_TYPES = ("activity", "transportation", "lodging", "checklist")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingNotification(Base):
    __tablename__ = "email_queue"
    __table_args__ = (
        CheckConstraint(
            "update_type IN (" + ", ".join(f"'{t}'" for t in UPDATE_TYPES) + ")",
            name="ck_email_queue_update_type",
        ),
        Index("ix_email_queue_user_trip", "user_id", "trip_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    updater_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    update_type = Column(String(32), nullable=False)
    update_data = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
