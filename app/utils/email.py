import smtplib
from email.message import EmailMessage
from typing import Optional

import structlog

from app.core.config import settings

logger = structlog.get_logger()


def _send_email_smtp(msg: EmailMessage) -> None:
    """
    Send an email message over SMTP.
    This is intended to be called from Celery workers, not request handlers.
    """
    with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30) as server:
        server.ehlo()
        server.starttls()
        server.ehlo()
        if settings.EMAIL_USER and settings.EMAIL_PASSWORD:
            server.login(settings.EMAIL_USER, settings.EMAIL_PASSWORD)
        server.send_message(msg)


def queue_email(to_email: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """
    Queue an email for asynchronous sending via Celery.

    Returns ``True`` when the message was handed to the broker (or emails
    are disabled), ``False`` when queueing failed. Callers decide whether a
    failure matters; most treat it as fire-and-forget.
    """
    if not settings.EMAILS_ENABLED:
        logger.info("email_skipped", to=to_email, subject=subject)
        return True

    try:
        from app.tasks.email_tasks import send_email_task

        result = send_email_task.delay(to_email, subject, html, text)
    except Exception as exc:
        logger.exception("email_queue_failed", to=to_email, subject=subject, error=str(exc))
        return False

    logger.info("email_queued", to=to_email, subject=subject, task_id=result.id)
    return True
