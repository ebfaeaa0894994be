"""
Turn one pending group (recipient + trip) into a single digest email.

Pure transformation: no DB, no SMTP. Rows are bucketed by kind (activity, transportation,
lodging, checklist), each bucket gets a small summary view per row, and the header names
everyone who contributed ("Ana, Ben and Caro") in first-appearance order.
Missing payload fields get placeholders so one bad row never blocks the group.
"""
from typing import Any, TypedDict

from tripmail.config import settings
from tripmail.core.constants import (
    APP_PATH,
    BATCHED_UPDATE_TEMPLATE,
    PRIVACY_PATH,
    SOCIAL_LINKS,
    TERMS_PATH,
    UNKNOWN_RECIPIENT_NAME,
    UNKNOWN_UPDATER_NAME,
    UNSUBSCRIBE_PATH,
)
from tripmail.schemas.notifications import EmailMessage, PendingGroup, QueuedUpdate
from tripmail.schemas.trip_updates import UNKNOWN_DESTINATION, UpdateKind

NOT_AVAILABLE = "N/A"
UNTITLED_TRIP = "your trip"


class ActivityView(TypedDict):
    name: str
    date: str
    time: str
    location: str
    added_by: str


class TransportationView(TypedDict):
    type: str
    company: str
    from_location: str
    to_location: str
    date: str
    time: str
    added_by: str


class LodgingView(TypedDict):
    name: str
    address: str
    check_in: str
    check_out: str
    added_by: str


class ChecklistView(TypedDict):
    name: str
    added_by: str


def email_links(frontend_url: str | None = None) -> dict[str, str]:
    """Footer links shared by every notification email."""
    base = (frontend_url if frontend_url is not None else settings.frontend_url).rstrip("/")
    return {
        "app_link": f"{base}{APP_PATH}",
        "privacy_link": f"{base}{PRIVACY_PATH}",
        "terms_link": f"{base}{TERMS_PATH}",
        "unsubscribe_link": f"{base}{UNSUBSCRIBE_PATH}",
        **SOCIAL_LINKS,
    }


def format_updaters(names: list[str]) -> str:
    """Distinct names in first-appearance order: 'A', 'A and B', 'A, B and C'."""
    unique = list(dict.fromkeys(n for n in names if n))
    if not unique:
        return UNKNOWN_UPDATER_NAME
    if len(unique) == 1:
        return unique[0]
    return f"{', '.join(unique[:-1])} and {unique[-1]}"


def build_subject(kinds: list[UpdateKind], trip_name: str) -> str:
    if len(kinds) == 1:
        return f'Update on trip "{trip_name}": New {kinds[0].label} Added'
    return f'{len(kinds)} updates on trip "{trip_name}"'


def _activity_view(n: QueuedUpdate) -> ActivityView:
    d = n.data
    return {
        "name": d.activity_name or "Untitled activity",
        "date": d.activity_date or NOT_AVAILABLE,
        "time": d.activity_time or "",
        "location": d.activity_location or NOT_AVAILABLE,
        "added_by": n.updater_name,
    }


def _transportation_view(n: QueuedUpdate) -> TransportationView:
    d = n.data
    return {
        "type": d.transport_type or "Transportation",
        "company": d.transport_company or "",
        "from_location": d.transport_from or NOT_AVAILABLE,
        "to_location": d.transport_to or NOT_AVAILABLE,
        "date": d.transport_date or NOT_AVAILABLE,
        "time": d.transport_time or "",
        "added_by": n.updater_name,
    }


def _lodging_view(n: QueuedUpdate) -> LodgingView:
    d = n.data
    return {
        "name": d.lodging_name or "Untitled lodging",
        "address": d.lodging_address or NOT_AVAILABLE,
        "check_in": d.lodging_check_in or NOT_AVAILABLE,
        "check_out": d.lodging_check_out or NOT_AVAILABLE,
        "added_by": n.updater_name,
    }


def _checklist_view(n: QueuedUpdate) -> ChecklistView:
    return {
        "name": n.data.checklist_name or "Untitled checklist",
        "added_by": n.updater_name,
    }


_VIEWS = {
    UpdateKind.ACTIVITY: _activity_view,
    UpdateKind.TRANSPORTATION: _transportation_view,
    UpdateKind.LODGING: _lodging_view,
    UpdateKind.CHECKLIST: _checklist_view,
}


def bucket_updates(notifications: list[QueuedUpdate]) -> dict[UpdateKind, list[dict[str, Any]]]:
    """Per-kind summary views, insertion order kept inside each bucket."""
    buckets: dict[UpdateKind, list[dict[str, Any]]] = {kind: [] for kind in UpdateKind}
    for n in notifications:
        buckets[n.kind].append(_VIEWS[n.kind](n))
    return buckets


def render_batch(group: PendingGroup, links: dict[str, str] | None = None) -> EmailMessage:
    """
    Build the batched trip update email for one group. `group.notifications` must be non-empty
    and ordered oldest first; trip fields are taken from the first row that has them.
    """
    if not group.notifications:
        raise ValueError(f"empty group for user {group.user_id} trip {group.trip_id}")
    notifications = group.notifications
    first = next((n.data for n in notifications if n.data.trip_name), notifications[0].data)
    trip_name = first.trip_name or UNTITLED_TRIP
    buckets = bucket_updates(notifications)
    activities = buckets[UpdateKind.ACTIVITY]
    transportation = buckets[UpdateKind.TRANSPORTATION]
    lodging = buckets[UpdateKind.LODGING]
    checklists = buckets[UpdateKind.CHECKLIST]

    template_data: dict[str, Any] = {
        "is_batched": True,
        "user_name": group.recipient_name or UNKNOWN_RECIPIENT_NAME,
        "user_email": group.recipient_email,
        "trip_name": trip_name,
        "trip_destination": first.trip_destination or UNKNOWN_DESTINATION,
        "trip_link": first.trip_link or "",
        "total_updates": len(notifications),
        "updaters_text": format_updaters([n.updater_name for n in notifications]),
        "has_activities": bool(activities),
        "activities_count": len(activities),
        "activities": activities,
        "has_transportation": bool(transportation),
        "transportation_count": len(transportation),
        "transportation_items": transportation,
        "has_lodging": bool(lodging),
        "lodging_count": len(lodging),
        "lodging_items": lodging,
        "has_checklists": bool(checklists),
        "checklists_count": len(checklists),
        "checklist_items": checklists,
        **(links if links is not None else email_links()),
    }
    return EmailMessage(
        to=group.recipient_email,
        subject=build_subject([n.kind for n in notifications], trip_name),
        template_name=BATCHED_UPDATE_TEMPLATE,
        template_data=template_data,
    )
