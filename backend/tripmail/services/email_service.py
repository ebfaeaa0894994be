"""
Send notification emails via SMTP (Google Gmail or other), rendered from Jinja2 HTML templates.
Set EMAIL_HOST, EMAIL_PORT, EMAIL_USER, EMAIL_PASS (and optionally EMAIL_FROM) in .env.
Use a Gmail App Password (not your normal password).
"""
import logging
import re
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Callable

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from tripmail.config import settings
from tripmail.schemas.notifications import EmailMessage

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "email_templates"

# Anything that accepts a rendered message. Return value is ignored by the queue.
MailTransport = Callable[[EmailMessage], Any]

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def _from_address() -> str:
    if settings.email_from:
        return settings.email_from
    if settings.email_user:
        return f"Trip Planner <{settings.email_user}>"
    return "Trip Planner <noreply@localhost>"


def render_template(template_name: str, template_data: dict[str, Any]) -> tuple[str, str]:
    """Render <template_name>.html; returns (html, plain text fallback)."""
    html = _env.get_template(f"{template_name}.html").render(**template_data)
    text = re.sub(r"<[^>]+>", "", html)
    text = re.sub(r"\n\s*\n", "\n\n", text).strip()
    return html, text


def send_email(to: str, subject: str, template_name: str, template_data: dict[str, Any]) -> bool:
    """
    Render the template and send one email over SMTP.
    Returns True if sent, False if skipped (no recipient / no credentials) or failed.
    """
    to = (to or "").strip()
    if not to:
        return False
    user = settings.email_user
    password = settings.email_pass
    if not user or not password:
        logger.debug("EMAIL_USER or EMAIL_PASS not set; skipping email to %s", to)
        return False
    try:
        html, text = render_template(template_name, template_data)
    except TemplateError as e:
        logger.error("Error rendering email template %s: %s", template_name, e)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = _from_address()
    msg["To"] = to
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html, "html"))
    try:
        if settings.email_port == 465:
            with smtplib.SMTP_SSL(settings.email_host, settings.email_port, timeout=10) as server:
                server.login(user, password)
                server.sendmail(user, [to], msg.as_string())
        else:
            with smtplib.SMTP(settings.email_host, settings.email_port, timeout=10) as server:
                server.starttls()
                server.login(user, password)
                server.sendmail(user, [to], msg.as_string())
        logger.info("Email sent successfully to %s (%s)", to, template_name)
        return True
    except Exception as e:
        logger.exception("Error sending email to %s: %s", to, e)
        return False


def send_message(message: EmailMessage) -> bool:
    return send_email(message.to, message.subject, message.template_name, message.template_data)


def send_email_in_background(message: EmailMessage) -> None:
    """
    Fire-and-forget: hand the message to a worker thread and return immediately.
    Non-daemon, so a send in flight at shutdown finishes (bounded by the SMTP timeout).
    """
    thread = threading.Thread(
        target=send_message,
        args=(message,),
        name=f"email_send:{message.to}",
        daemon=False,
    )
    thread.start()
