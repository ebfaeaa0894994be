"""
Batched trip update emails.

Flow: a trip change calls notify_trip_members -> one email_queue row per member to notify.
Every EMAIL_PROCESS_INTERVAL_MS the scheduler calls process_email_queue, which:
  1) selects (user, trip) pairs with at least one row older than EMAIL_QUEUE_DURATION_MS,
  2) loads ALL rows of each pair (younger ones too, so a group is never split),
  3) renders one digest email per pair and hands it to the mail transport,
  4) deletes exactly the rows it loaded (rows added meanwhile wait for the next tick).

Sends are fire-and-forget: a transport failure is logged and the rows are still deleted
(at most once). A failed delete leaves the rows for the next tick (possible duplicate, never lost).
Single scheduler instance assumed; there is no row claiming between select and delete.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from tripmail.config import settings
from tripmail.core.constants import DEFAULT_AVATAR_URL, UNKNOWN_UPDATER_NAME
from tripmail.db.base import Base
from tripmail.models.email_queue import PendingNotification
from tripmail.models.trip import Trip, TripMember
from tripmail.models.user import User
from tripmail.schemas.notifications import EmailMessage, PendingGroup, QueuedUpdate
from tripmail.schemas.trip_updates import TripInfo, UpdateKind, enrich_update_data, parse_update_data
from tripmail.services.batch_renderer import render_batch
from tripmail.services.email_service import MailTransport

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _queue_duration(queue_duration: timedelta | None) -> timedelta:
    if queue_duration is not None:
        return queue_duration
    return timedelta(milliseconds=settings.email_queue_duration_ms)


def trip_link(trip_id: int) -> str:
    return f"{settings.frontend_url}/trips/{trip_id}"


def avatar_url(profile_image: str | None) -> str:
    if not profile_image:
        return DEFAULT_AVATAR_URL
    if profile_image.startswith(("http://", "https://")):
        return profile_image
    return f"{settings.frontend_url}{profile_image}"


def initialize_email_queue(engine) -> None:
    """Create email_queue (and the users/trips tables it references) if absent. Alembic owns production schema."""
    Base.metadata.create_all(
        bind=engine,
        tables=[User.__table__, Trip.__table__, TripMember.__table__, PendingNotification.__table__],
    )
    logger.info("Email queue table initialized")


# --- Enqueue ---


def queue_email_notification(
    db: Session,
    trip_id: int,
    user_id: int,
    updater_id: int,
    kind: UpdateKind | str,
    update_data: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Insert one queue row (already-serialized update_data). Never raises; returns False on failure."""
    try:
        kind = UpdateKind(kind)
        row = PendingNotification(
            trip_id=trip_id,
            user_id=user_id,
            updater_id=updater_id,
            update_type=kind.value,
            update_data=update_data,
            created_at=_now(now),
        )
        db.add(row)
        db.commit()
        logger.info("Queued %s notification for user %s on trip %s", kind.value, user_id, trip_id)
        return True
    except Exception as e:
        logger.exception("Error queuing email notification for user %s on trip %s: %s", user_id, trip_id, e)
        db.rollback()
        return False


def get_members_to_notify(db: Session, trip_id: int, updater_id: int) -> list[User]:
    """Trip members other than the updater who have notification email turned on."""
    stmt = (
        select(User)
        .join(TripMember, TripMember.user_id == User.id)
        .where(
            TripMember.trip_id == trip_id,
            User.id != updater_id,
            User.receive_emails.is_(True),
        )
        .order_by(User.id)
    )
    return list(db.execute(stmt).scalars().all())


def notify_trip_members(
    db: Session,
    trip_id: int,
    updater_id: int,
    kind: UpdateKind | str,
    payload: Any,
    trip_info: TripInfo,
    *,
    now: datetime | None = None,
) -> int:
    """
    Queue one notification per trip member to notify (excluding the updater).
    Called right after a trip item is created; never raises so the caller's action always succeeds.
    Returns the number of members queued for (0 on failure).
    """
    try:
        kind = UpdateKind(kind)
        members = get_members_to_notify(db, trip_id, updater_id)
        if not members:
            logger.debug("No members to notify for %s on trip %s", kind.value, trip_id)
            return 0
        update_data = enrich_update_data(kind, payload, trip_info, trip_link(trip_id))
        stamp = _now(now)
        queued = 0
        for member in members:
            if queue_email_notification(db, trip_id, member.id, updater_id, kind, update_data, now=stamp):
                queued += 1
        return queued
    except Exception as e:
        logger.exception("Error queuing notifications for trip %s members: %s", trip_id, e)
        db.rollback()
        return 0


# --- Select ---


def select_ready_groups(
    db: Session,
    *,
    now: datetime | None = None,
    queue_duration: timedelta | None = None,
) -> list[tuple[int, int]]:
    """Distinct (user_id, trip_id) pairs with at least one row older than the queue duration."""
    cutoff = _now(now) - _queue_duration(queue_duration)
    stmt = (
        select(PendingNotification.user_id, PendingNotification.trip_id)
        .where(PendingNotification.created_at <= cutoff)
        .distinct()
        .order_by(PendingNotification.user_id, PendingNotification.trip_id)
    )
    return [(user_id, trip_id) for user_id, trip_id in db.execute(stmt).all()]


def load_group(db: Session, user_id: int, trip_id: int) -> PendingGroup | None:
    """All pending rows for one (user, trip) pair, oldest first, with recipient and updater fields."""
    recipient = aliased(User)
    updater = aliased(User)
    stmt = (
        select(PendingNotification, recipient, updater)
        .join(recipient, PendingNotification.user_id == recipient.id)
        .join(updater, PendingNotification.updater_id == updater.id)
        .where(PendingNotification.user_id == user_id, PendingNotification.trip_id == trip_id)
        .order_by(PendingNotification.created_at.asc(), PendingNotification.id.asc())
    )
    rows = db.execute(stmt).all()
    if not rows:
        return None
    first_recipient = rows[0][1]
    return PendingGroup(
        user_id=user_id,
        trip_id=trip_id,
        recipient_name=first_recipient.name,
        recipient_email=first_recipient.email,
        notifications=[
            QueuedUpdate(
                id=row.id,
                kind=UpdateKind(row.update_type),
                data=parse_update_data(row.update_type, row.update_data),
                updater_name=who.name or UNKNOWN_UPDATER_NAME,
                updater_avatar=avatar_url(who.profile_image),
                created_at=row.created_at,
            )
            for row, _, who in rows
        ],
    )


def get_pending_notifications(
    db: Session,
    *,
    now: datetime | None = None,
    queue_duration: timedelta | None = None,
) -> list[PendingGroup]:
    """Ready groups with all their rows. Raises on DB errors (the caller aborts the tick)."""
    groups = []
    for user_id, trip_id in select_ready_groups(db, now=now, queue_duration=queue_duration):
        group = load_group(db, user_id, trip_id)
        if group is not None:
            groups.append(group)
    return groups


# --- Dispatch ---


def delete_processed_notifications(db: Session, notification_ids: list[int]) -> int:
    """Delete exactly these rows. Returns rows deleted; on DB error logs, rolls back and returns 0."""
    if not notification_ids:
        return 0
    try:
        result = db.execute(delete(PendingNotification).where(PendingNotification.id.in_(notification_ids)))
        db.commit()
        logger.info("Deleted %s processed notifications from queue", result.rowcount)
        return result.rowcount
    except SQLAlchemyError as e:
        logger.exception("Error deleting processed notifications %s: %s", notification_ids, e)
        db.rollback()
        return 0


def dispatch_and_purge(
    db: Session,
    group: PendingGroup,
    message: EmailMessage,
    transport: MailTransport,
) -> bool:
    """
    Hand the message to the transport, then delete the group's loaded rows.
    Transport errors do not block the delete. Returns True if the rows were deleted.
    """
    try:
        transport(message)
    except Exception as e:
        logger.exception("Error sending batched email to %s (trip %s): %s", message.to, group.trip_id, e)
    ids = group.ids
    deleted = delete_processed_notifications(db, ids)
    if deleted == 0 and ids:
        logger.warning("Rows %s for user %s trip %s kept for next run", ids, group.user_id, group.trip_id)
        return False
    return True


def process_email_queue(
    db: Session,
    transport: MailTransport,
    *,
    now: datetime | None = None,
    queue_duration: timedelta | None = None,
    links: dict[str, str] | None = None,
) -> int:
    """One scheduler tick. Returns the number of groups whose emails were dispatched and purged."""
    try:
        groups = get_pending_notifications(db, now=now, queue_duration=queue_duration)
    except SQLAlchemyError as e:
        logger.exception("Error getting pending notifications: %s", e)
        db.rollback()
        return 0
    if not groups:
        logger.debug("No pending notifications to process")
        return 0
    logger.info("Processing %s batched notifications", len(groups))
    processed = 0
    for group in groups:
        try:
            message = render_batch(group, links=links)
            if dispatch_and_purge(db, group, message, transport):
                processed += 1
        except Exception as e:
            logger.exception("Error processing notifications for user %s trip %s: %s", group.user_id, group.trip_id, e)
            db.rollback()
    return processed


def queue_summary(
    db: Session,
    *,
    now: datetime | None = None,
    queue_duration: timedelta | None = None,
) -> dict[str, Any]:
    """Pending rows per (user, trip) pair with the oldest timestamp and whether the pair is ready."""
    now = _now(now)
    cutoff = now - _queue_duration(queue_duration)
    rows = db.execute(
        select(PendingNotification.user_id, PendingNotification.trip_id, PendingNotification.created_at)
        .order_by(PendingNotification.created_at.asc(), PendingNotification.id.asc())
    ).all()
    by_pair: dict[tuple[int, int], dict[str, Any]] = {}
    for user_id, trip_id, created_at in rows:
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)  # SQLite drops tzinfo
        entry = by_pair.setdefault(
            (user_id, trip_id),
            {"user_id": user_id, "trip_id": trip_id, "count": 0, "oldest_created_at": created_at},
        )
        entry["count"] += 1
    groups = []
    for entry in by_pair.values():
        oldest = entry["oldest_created_at"]
        groups.append({
            **entry,
            "oldest_created_at": oldest.isoformat() if oldest else None,
            "ready": oldest is not None and oldest <= cutoff,
        })
    return {"pending_count": len(rows), "group_count": len(groups), "groups": groups}
