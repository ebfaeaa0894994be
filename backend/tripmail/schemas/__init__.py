from tripmail.schemas.notifications import EmailMessage, PendingGroup, QueuedUpdate
from tripmail.schemas.trip_updates import (
    ActivityUpdate,
    ChecklistUpdate,
    LodgingUpdate,
    TransportationUpdate,
    TripInfo,
    TripUpdate,
    UpdateKind,
)

__all__ = [
    "ActivityUpdate",
    "ChecklistUpdate",
    "EmailMessage",
    "LodgingUpdate",
    "PendingGroup",
    "QueuedUpdate",
    "TransportationUpdate",
    "TripInfo",
    "TripUpdate",
    "UpdateKind",
]
