from datetime import datetime

from celery import shared_task
from celery.utils.log import get_task_logger
from sqlalchemy import or_

from app.db.session import SessionLocal
from app.models.password_reset_token import PasswordResetToken
from app.models.token_blacklist import TokenBlacklist

logger = get_task_logger(__name__)

RETRY_DELAY_SECONDS = 60


def purge_expired_tokens(db, now=None) -> dict:
    """Delete revocations past their expiry and reset tokens that are spent.

    A reset token is spent once it expired or was used. Revocation rows
    only matter until the revoked JWT would have expired on its own.
    """
    now = now or datetime.utcnow()
    blacklisted = (
        db.query(TokenBlacklist)
        .filter(TokenBlacklist.expires_at < now)
        .delete(synchronize_session=False)
    )
    reset_tokens = (
        db.query(PasswordResetToken)
        .filter(or_(PasswordResetToken.expires_at < now, PasswordResetToken.used_at.isnot(None)))
        .delete(synchronize_session=False)
    )
    db.commit()
    return {"blacklisted_tokens": blacklisted, "reset_tokens": reset_tokens}


@shared_task(bind=True, max_retries=3)
def cleanup_expired_tokens(self):
    db = SessionLocal()
    try:
        result = purge_expired_tokens(db)
    except Exception as exc:
        db.rollback()
        logger.warning("token cleanup failed: %s", exc)
        raise self.retry(exc=exc, countdown=RETRY_DELAY_SECONDS)
    finally:
        db.close()

    logger.info(
        "token cleanup removed %s revocations and %s reset tokens",
        result["blacklisted_tokens"],
        result["reset_tokens"],
    )
    return result
