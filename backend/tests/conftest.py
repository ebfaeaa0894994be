import os

# Must be set before tripmail.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_USER"] = ""
os.environ["EMAIL_PASS"] = ""
os.environ["FRONTEND_URL"] = "http://trips.test"

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tripmail.models.trip import Trip, TripMember
from tripmail.models.user import User
from tripmail.services.email_queue_service import initialize_email_queue

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
QUEUE_DURATION = timedelta(hours=1)


class RecordingTransport:
    """Mail transport that keeps every message instead of sending it."""

    def __init__(self):
        self.messages = []

    def __call__(self, message):
        self.messages.append(message)
        return True


class FailingTransport:
    def __init__(self):
        self.calls = 0

    def __call__(self, message):
        self.calls += 1
        raise ConnectionError("SMTP server unreachable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    initialize_email_queue(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def people(db):
    """Ana updates the trip; Ben and Caro get emails; Dan opted out; Eve is not a member."""
    users = {
        "ana": User(name="Ana", email="ana@example.com", profile_image="/uploads/ana.png"),
        "ben": User(name="Ben", email="ben@example.com"),
        "caro": User(name="Caro", email="caro@example.com"),
        "dan": User(name="Dan", email="dan@example.com", receive_emails=False),
        "eve": User(name="Eve", email="eve@example.com"),
    }
    db.add_all(users.values())
    db.commit()
    return users


@pytest.fixture
def trip(db, people):
    trip = Trip(name="Lisbon Getaway", location="Lisbon, Portugal", start_date="2026-10-19", end_date="2026-10-25")
    db.add(trip)
    db.commit()
    db.add_all([
        TripMember(trip_id=trip.id, user_id=people["ana"].id, role="owner"),
        TripMember(trip_id=trip.id, user_id=people["ben"].id, role="editor"),
        TripMember(trip_id=trip.id, user_id=people["caro"].id, role="viewer"),
        TripMember(trip_id=trip.id, user_id=people["dan"].id, role="viewer"),
    ])
    db.commit()
    return trip


@pytest.fixture
def transport():
    return RecordingTransport()
