"""
Email queue processor: every EMAIL_PROCESS_INTERVAL_MS, send batched trip update emails
for (user, trip) groups whose oldest row is older than EMAIL_QUEUE_DURATION_MS.

Also runs once EMAIL_QUEUE_WARMUP_SECONDS after start to flush rows left over from a
previous shutdown. Ticks never overlap: a tick that finds the previous one still running
is skipped, so select-then-delete for a group always runs single-writer.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from tripmail.config import settings
from tripmail.core.constants import EMAIL_QUEUE_JOB_ID, EMAIL_QUEUE_WARMUP_JOB_ID
from tripmail.db.session import SessionLocal
from tripmail.services.email_queue_service import process_email_queue
from tripmail.services.email_service import MailTransport, send_email_in_background

logger = logging.getLogger(__name__)


class EmailQueueProcessor:
    """Owns the poll loop for the email queue. One per process."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        *,
        session_factory=SessionLocal,
        transport: MailTransport = send_email_in_background,
        poll_interval: timedelta | None = None,
        queue_duration: timedelta | None = None,
        warmup_seconds: float | None = None,
    ):
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.session_factory = session_factory
        self.transport = transport
        if poll_interval is None:
            poll_interval = timedelta(milliseconds=settings.email_process_interval_ms)
        if queue_duration is None:
            queue_duration = timedelta(milliseconds=settings.email_queue_duration_ms)
        self.poll_interval = poll_interval
        self.queue_duration = queue_duration
        self.warmup_seconds = settings.email_queue_warmup_seconds if warmup_seconds is None else warmup_seconds
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.scheduler.get_job(EMAIL_QUEUE_JOB_ID) is not None

    def run_once(self, now: datetime | None = None) -> int:
        """One tick in its own session. Returns groups processed (0 if a tick is already running)."""
        if not self._lock.acquire(blocking=False):
            logger.info("Email queue tick skipped; previous tick still running")
            return 0
        try:
            db = self.session_factory()
            try:
                return process_email_queue(
                    db,
                    self.transport,
                    now=now,
                    queue_duration=self.queue_duration,
                )
            finally:
                db.close()
        except Exception as e:
            logger.exception("Email queue tick failed: %s", e)
            return 0
        finally:
            self._lock.release()

    def start(self) -> None:
        if self.running:
            return
        logger.info(
            "Starting email queue processor (queue duration: %s minutes, check interval: %s minutes)",
            self.queue_duration.total_seconds() / 60,
            self.poll_interval.total_seconds() / 60,
        )
        self.scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.poll_interval.total_seconds(),
            id=EMAIL_QUEUE_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        # Flush anything left over from before the last shutdown
        self.scheduler.add_job(
            self.run_once,
            "date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=self.warmup_seconds),
            id=EMAIL_QUEUE_WARMUP_JOB_ID,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()

    def stop(self) -> None:
        """Stop future ticks. Emails already handed to the transport are not cancelled."""
        for job_id in (EMAIL_QUEUE_JOB_ID, EMAIL_QUEUE_WARMUP_JOB_ID):
            if self.scheduler.get_job(job_id) is not None:
                self.scheduler.remove_job(job_id)
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Email queue processor stopped")
