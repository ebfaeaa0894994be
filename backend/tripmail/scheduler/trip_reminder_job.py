"""Runs daily (TRIP_REMINDER_HOUR_UTC): email every opted-in member of trips starting tomorrow."""
import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripmail.config import settings
from tripmail.core.constants import DEFAULT_TRIP_IMAGE_URL, TRIP_REMINDER_TEMPLATE, UNKNOWN_RECIPIENT_NAME
from tripmail.db.session import SessionLocal
from tripmail.models.trip import Trip, TripMember
from tripmail.models.user import User
from tripmail.schemas.notifications import EmailMessage
from tripmail.schemas.trip_updates import UNKNOWN_DESTINATION
from tripmail.services.batch_renderer import email_links
from tripmail.services.email_queue_service import trip_link
from tripmail.services.email_service import MailTransport, send_email_in_background

logger = logging.getLogger(__name__)


def _display_date(value: str | None) -> str:
    try:
        return date.fromisoformat(value).strftime("%B %d, %Y")
    except (TypeError, ValueError):
        return value or ""


def build_reminder(trip: Trip, member: User) -> EmailMessage:
    cover = f"{settings.frontend_url}{trip.cover_image}" if trip.cover_image else DEFAULT_TRIP_IMAGE_URL
    link = trip_link(trip.id)
    return EmailMessage(
        to=member.email,
        subject=f"Reminder: Your trip to {trip.name} starts tomorrow!",
        template_name=TRIP_REMINDER_TEMPLATE,
        template_data={
            "user_name": member.name or UNKNOWN_RECIPIENT_NAME,
            "user_email": member.email,
            "trip_name": trip.name,
            "trip_destination": trip.location or UNKNOWN_DESTINATION,
            "trip_image": cover,
            "trip_start_date": _display_date(trip.start_date),
            "trip_end_date": _display_date(trip.end_date),
            "trip_link": link,
            "offline_link": f"{link}?offline=true",
            **email_links(),
        },
    )


def send_trip_reminders(
    db: Session,
    transport: MailTransport = send_email_in_background,
    *,
    today: date | None = None,
) -> int:
    """Send reminders for trips starting the day after `today`. Returns emails handed to the transport."""
    today = today or datetime.now(timezone.utc).date()
    tomorrow = (today + timedelta(days=1)).isoformat()
    trips = db.execute(select(Trip).where(Trip.start_date == tomorrow)).scalars().all()
    logger.info("Found %s trips starting tomorrow (%s)", len(trips), tomorrow)
    sent = 0
    for trip in trips:
        try:
            members = db.execute(
                select(User)
                .join(TripMember, TripMember.user_id == User.id)
                .where(TripMember.trip_id == trip.id, User.receive_emails.is_(True))
                .order_by(User.id)
            ).scalars().all()
            for member in members:
                transport(build_reminder(trip, member))
                sent += 1
        except Exception as e:
            logger.exception("Error sending reminders for trip %s: %s", trip.id, e)
    return sent


def run_trip_reminder_job() -> None:
    db = SessionLocal()
    try:
        sent = send_trip_reminders(db)
        logger.info("Trip reminder job: %s reminders sent", sent)
    except Exception as e:
        logger.exception("Trip reminder job failed: %s", e)
    finally:
        db.close()
