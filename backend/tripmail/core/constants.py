"""
Centralized constants for the email queue scheduler and notification emails.

Change job IDs, template names or link paths here instead of scattering literals
across main, services and routes. Durations come from settings (env-driven).
"""
# Scheduler job IDs (must match ids used by EmailQueueProcessor and main.py add_job)
EMAIL_QUEUE_JOB_ID = "email_queue"
EMAIL_QUEUE_WARMUP_JOB_ID = "email_queue_warmup"
TRIP_REMINDER_JOB_ID = "trip_reminder"

# Email templates (tripmail/email_templates/<name>.html)
BATCHED_UPDATE_TEMPLATE = "trip-update-batched-template"
TRIP_REMINDER_TEMPLATE = "trip-reminder-template"

DEFAULT_AVATAR_URL = "https://example.com/default-avatar.png"
DEFAULT_TRIP_IMAGE_URL = "https://example.com/default-trip.png"

# Fallback display names when a joined user row has no name
UNKNOWN_UPDATER_NAME = "A trip member"
UNKNOWN_RECIPIENT_NAME = "there"

# Frontend paths appended to settings.frontend_url
APP_PATH = "/dashboard"
PRIVACY_PATH = "/privacy"
TERMS_PATH = "/terms"
UNSUBSCRIBE_PATH = "/unsubscribe"

SOCIAL_LINKS = {
    "facebook_link": "https://facebook.com",
    "twitter_link": "https://twitter.com",
    "instagram_link": "https://instagram.com",
}
