from tripmail.models.email_queue import PendingNotification
from tripmail.models.trip import Trip, TripMember
from tripmail.models.user import User

__all__ = [
    "PendingNotification",
    "Trip",
    "TripMember",
    "User",
]
