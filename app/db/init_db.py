import structlog
from slugify import slugify
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import hash_password
from app.models.category import Category
from app.models.user import User, UserRole

logger = structlog.get_logger()

DEFAULT_CATEGORIES = [
    {"name": "Uniformes Escolares", "description": "Uniformes de diario para preescolar, primaria y secundaria"},
    {"name": "Uniformes Deportivos", "description": "Pants, playeras y shorts para educación física"},
    {"name": "Batas y Mandiles", "description": "Batas de laboratorio y mandiles escolares"},
    {"name": "Accesorios", "description": "Calcetas, corbatas, moños y complementos"},
]


def _seed_admin(db: Session) -> None:
    email = settings.DEFAULT_ADMIN_EMAIL.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        return

    password = (settings.DEFAULT_ADMIN_PASSWORD or "").strip()
    if not password:
        # production refuses to boot without a way to log in as admin
        if settings.ENVIRONMENT == "production":
            logger.error("admin_seed_missing_password", environment=settings.ENVIRONMENT)
            raise RuntimeError("DEFAULT_ADMIN_PASSWORD is required to seed the admin account")
        logger.warning("admin_seed_skipped", environment=settings.ENVIRONMENT)
        return

    db.add(
        User(
            email=email,
            password_hash=hash_password(password),
            name="Administrador FYTTSA",
            role=UserRole.ADMIN,
            is_active=True,
        )
    )
    logger.info("admin_seeded", email=email)


def _seed_categories(db: Session) -> None:
    existing = {slug for (slug,) in db.query(Category.slug).all()}
    for position, entry in enumerate(DEFAULT_CATEGORIES):
        slug = slugify(entry["name"])
        if slug in existing:
            continue
        db.add(
            Category(
                name=entry["name"],
                slug=slug,
                description=entry["description"],
                display_order=position,
            )
        )
        logger.info("category_seeded", slug=slug)


def init_db(db: Session) -> None:
    """Idempotent bootstrap: admin account plus the base catalog categories."""
    _seed_admin(db)
    _seed_categories(db)
    db.commit()


if __name__ == "__main__":
    from app.db.session import SessionLocal

    session = SessionLocal()
    try:
        init_db(session)
    finally:
        session.close()
