from fastapi import APIRouter

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import engine

API_VERSION = "1.0.0"

router = APIRouter()


def _unhealthy(reason: str) -> dict:
    return {"status": "unhealthy", "reason": reason}


@router.get("/")
def root():
    return {
        "message": settings.PROJECT_NAME,
        "docs": f"{settings.API_PREFIX}/docs",
        "version": API_VERSION,
    }


@router.get("/health")
def health():
    return {"status": "healthy", "environment": settings.ENVIRONMENT, "version": API_VERSION}


@router.get("/health/database")
def database_health():
    """Run a trivial query and report the connection pool state."""
    try:
        with engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")
    except Exception as exc:
        return _unhealthy(f"Database connectivity check failed: {exc}")

    pool = engine.pool
    return {
        "status": "healthy",
        "pool": {
            "pool_class": type(pool).__name__,
            "status": pool.status() if hasattr(pool, "status") else None,
        },
    }


@router.get("/health/email")
def email_health():
    """Broker reachability plus at least one Celery worker answering ping."""
    if not settings.EMAILS_ENABLED:
        return {"status": "disabled"}

    try:
        with celery_app.connection_or_acquire() as connection:
            connection.ensure_connection(max_retries=1)
        workers = celery_app.control.inspect(timeout=1.0).ping() or {}
    except Exception as exc:
        return _unhealthy(f"Email queue check failed: {exc}")

    if not workers:
        return _unhealthy("No active Celery workers")
    return {"status": "healthy", "workers": len(workers)}
