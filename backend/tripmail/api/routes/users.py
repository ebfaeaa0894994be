"""Per-user notification email opt-in (users.receive_emails)."""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripmail.core.errors import MSG_USER_NOT_FOUND, not_found, queue_error_to_http
from tripmail.db.session import get_db
from tripmail.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


class EmailPreferencesRequest(BaseModel):
    receive_emails: bool


@router.get("/users/{user_id}/email-preferences")
def get_email_preferences(user_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    user = db.get(User, user_id)
    if user is None:
        raise not_found(MSG_USER_NOT_FOUND)
    return {"user_id": user.id, "receive_emails": bool(user.receive_emails)}


@router.patch("/users/{user_id}/email-preferences")
def update_email_preferences(
    user_id: int,
    body: EmailPreferencesRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Opt in or out of trip update and reminder emails. Already-queued rows for an opted-out user are still sent."""
    user = db.get(User, user_id)
    if user is None:
        raise not_found(MSG_USER_NOT_FOUND)
    try:
        user.receive_emails = body.receive_emails
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Updating email preferences for user %s failed: %s", user_id, e)
        raise queue_error_to_http(e)
    return {"ok": True, "user_id": user.id, "receive_emails": bool(user.receive_emails)}
