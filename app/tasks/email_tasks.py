from email.message import EmailMessage
from typing import Optional

from celery import Task
from celery.utils.log import get_task_logger

from app.core.celery_app import celery_app
from app.core.config import settings
from app.utils.email import _send_email_smtp

logger = get_task_logger(__name__)

PLAIN_TEXT_FALLBACK = "Este mensaje requiere un cliente de correo compatible con HTML."


class EmailTask(Task):
    """Retries SMTP and socket failures with exponential backoff."""

    autoretry_for = (OSError,)
    retry_kwargs = {"max_retries": 5}
    retry_backoff = 30
    retry_backoff_max = 900
    retry_jitter = True


def build_email(to_email: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
    sender = settings.EMAIL_FROM or settings.EMAIL_USER
    msg = EmailMessage()
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{sender}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(text or PLAIN_TEXT_FALLBACK)
    msg.add_alternative(html, subtype="html")
    return msg


@celery_app.task(base=EmailTask, name="app.tasks.email_tasks.send_email_task")
def send_email_task(to_email: str, subject: str, html: str, text: Optional[str] = None):
    _send_email_smtp(build_email(to_email, subject, html, text))
    logger.info("email sent to=%s subject=%s", to_email, subject)
