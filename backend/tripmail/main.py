"""
FastAPI app entrypoint.

Trip update notifications: queue API + background email queue processor + daily trip reminders.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from tripmail.api.routes import notifications, users
from tripmail.config import settings
from tripmail.core.constants import TRIP_REMINDER_JOB_ID
from tripmail.db.session import engine
from tripmail.scheduler.email_queue_job import EmailQueueProcessor
from tripmail.scheduler.trip_reminder_job import run_trip_reminder_job
from tripmail.services.email_queue_service import initialize_email_queue

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# One scheduler for the process: email queue ticks + daily trip reminders
_scheduler = BackgroundScheduler(timezone="UTC")
_email_queue = EmailQueueProcessor(_scheduler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    initialize_email_queue(engine)
    _scheduler.add_job(
        run_trip_reminder_job,
        "cron",
        hour=settings.trip_reminder_hour_utc,
        minute=0,
        id=TRIP_REMINDER_JOB_ID,
        replace_existing=True,
    )
    _email_queue.start()
    app.state.scheduler = _scheduler
    app.state.email_queue = _email_queue
    logger.info("Backend ready; email queue processor running")
    yield
    _email_queue.stop()
    _scheduler.shutdown(wait=False)


app = FastAPI(title="Trip Notifications", version="0.1.0", lifespan=lifespan)
# Available before startup too (tests, manual flush without lifespan)
app.state.email_queue = _email_queue

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications.router, tags=["notifications"])
app.include_router(users.router, tags=["users"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Trip Notifications API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
