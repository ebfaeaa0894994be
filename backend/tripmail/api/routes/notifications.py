"""
Trip update notifications API.

Supports: queue a trip update for the trip's members (called by the trip service after a
create), inspect the pending queue, and flush ready groups now instead of waiting for the next tick.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripmail.core.errors import MSG_TRIP_NOT_FOUND, not_found, queue_error_to_http
from tripmail.db.session import get_db
from tripmail.models.trip import Trip
from tripmail.schemas.trip_updates import TripInfo, TripUpdate
from tripmail.services.email_queue_service import notify_trip_members, queue_summary

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Enqueue ---


class TripUpdateRequest(BaseModel):
    updater_id: int = Field(..., description="User who made the change (not notified)")
    update: TripUpdate


@router.post("/trips/{trip_id}/updates")
def queue_trip_update(
    trip_id: int,
    body: TripUpdateRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Queue a batched email for every member of the trip except the updater.
    Queue errors are logged and reported as queued=0; they never fail the request.
    """
    try:
        trip = db.get(Trip, trip_id)
    except SQLAlchemyError as e:
        logger.warning("Trip lookup failed for %s: %s", trip_id, e)
        raise queue_error_to_http(e)
    if trip is None:
        raise not_found(MSG_TRIP_NOT_FOUND)
    queued = notify_trip_members(
        db,
        trip.id,
        body.updater_id,
        body.update.kind,
        body.update,
        TripInfo(name=trip.name, location=trip.location),
    )
    return {"trip_id": trip.id, "kind": body.update.kind, "queued": queued}


# --- Queue state ---


@router.get("/notifications/queue")
def get_queue(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Pending rows grouped by (user, trip), oldest first, with whether each group is ready to send."""
    try:
        return queue_summary(db)
    except SQLAlchemyError as e:
        logger.warning("Queue summary failed: %s", e)
        raise queue_error_to_http(e)


@router.post("/notifications/queue/process")
def process_queue_now(request: Request) -> dict[str, Any]:
    """Run one email queue tick now (same rules as the scheduled tick)."""
    processor = request.app.state.email_queue
    return {"groups_processed": processor.run_once()}
