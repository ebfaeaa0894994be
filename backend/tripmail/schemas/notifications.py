"""In-memory shapes passed between the queue selector, renderer and dispatcher."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tripmail.schemas.trip_updates import UpdateKind


@dataclass
class QueuedUpdate:
    """One email_queue row joined with its updater's display fields."""

    id: int
    kind: UpdateKind
    data: Any  # payload model for `kind` (ActivityUpdate, LodgingUpdate, ...)
    updater_name: str
    updater_avatar: str
    created_at: datetime | None = None


@dataclass
class PendingGroup:
    """All pending rows for one (recipient, trip) pair, oldest first."""

    user_id: int
    trip_id: int
    recipient_name: str
    recipient_email: str
    notifications: list[QueuedUpdate] = field(default_factory=list)

    @property
    def ids(self) -> list[int]:
        return [n.id for n in self.notifications]


@dataclass
class EmailMessage:
    """A rendered email ready for the mail transport."""

    to: str
    subject: str
    template_name: str
    template_data: dict[str, Any] = field(default_factory=dict)
