import os
import tempfile
from collections.abc import Iterator

# settings are read at import time, so the environment comes first
_scratch = tempfile.mkdtemp(prefix="fyttsa-tests-")
os.environ.update(
    {
        "ENVIRONMENT": "development",
        "EMAILS_ENABLED": "false",
        "PRODUCT_UPLOAD_DIR": os.path.join(_scratch, "uploads"),
        "CATEGORY_UPLOAD_DIR": os.path.join(_scratch, "uploads", "categories"),
    }
)
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_scratch, 'boot.db')}")
os.environ.setdefault("JWT_SECRET", "pruebas-fyttsa-clave-suficientemente-larga")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.security import hash_password  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.auth_service import issue_token  # noqa: E402

PASSWORD = "Secreta123"


@pytest.fixture()
def db_session(tmp_path) -> Iterator[Session]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def client(db_session: Session) -> Iterator[TestClient]:
    app.dependency_overrides[get_db] = lambda: db_session
    app.state.limiter.reset()
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def create_user(
    db: Session,
    email: str,
    name: str = "Cliente Prueba",
    role: UserRole = UserRole.USER,
    is_active: bool = True,
) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture()
def customer(db_session: Session) -> User:
    return create_user(db_session, "cliente@fyttsa.mx")


@pytest.fixture()
def admin(db_session: Session) -> User:
    return create_user(db_session, "admin@fyttsa.mx", name="Admin", role=UserRole.ADMIN)


@pytest.fixture()
def customer_headers(customer: User) -> dict:
    return auth_headers(customer)


@pytest.fixture()
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)
