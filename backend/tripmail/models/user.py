"""Trip planner user: only the columns notification email needs.

receive_emails: opt-in flag for trip update and reminder emails (default on).
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, true
from sqlalchemy.sql import func

from tripmail.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    email = Column(String(256), nullable=False, unique=True, index=True)
    profile_image = Column(String(512), nullable=True)  # path relative to frontend_url
    receive_emails = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
