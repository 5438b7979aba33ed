from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import EmailAlreadyExists, InvalidCredentials
from app.core.security import (
    create_access_token,
    decode_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from app.models.password_reset_token import PasswordResetToken
from app.models.token_blacklist import TokenBlacklist
from app.models.user import User, UserRole
from app.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.utils.email import queue_email
from app.utils.email_templates import reset_password_template, welcome_template

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 6
FORGOT_PASSWORD_MESSAGE = (
    "Si el correo existe, recibirás instrucciones para restablecer tu contraseña"
)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def public_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
    }


def profile(user: User) -> dict:
    return {
        **public_user(user),
        "phone": user.phone,
        "is_active": user.is_active,
        "last_login": user.last_login,
        "created_at": user.created_at,
    }


def issue_token(user: User) -> str:
    return create_access_token(
        {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "name": user.name,
        }
    )


def register(db: Session, data: RegisterRequest) -> dict:
    if not (data.name or "").strip() or not data.email or not data.password:
        raise _bad_request("Todos los campos son requeridos")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise _bad_request("La contraseña debe tener al menos 6 caracteres")

    if db.query(User.id).filter(User.email == data.email).first():
        raise EmailAlreadyExists()

    user = User(
        name=data.name.strip(),
        email=data.email,
        password_hash=hash_password(data.password),
        role=UserRole.USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyExists()
    db.refresh(user)

    logger.info("user_registered", user_id=user.id)
    queue_email(user.email, "¡Bienvenido a FYTTSA!", welcome_template(user.name))
    return {"token": issue_token(user), "user": public_user(user)}


def login(db: Session, data: LoginRequest) -> dict:
    if not data.email or not data.password:
        raise _bad_request("Todos los campos son requeridos")

    user = db.query(User).filter(User.email == data.email).first()
    if not user:
        raise _bad_request("Usuario no encontrado")
    if not verify_password(data.password, user.password_hash):
        logger.warning("login_failed", user_id=user.id)
        raise InvalidCredentials()
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cuenta desactivada")

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    logger.info("user_logged_in", user_id=user.id)
    return {"token": issue_token(user), "user": public_user(user)}


def update_profile(db: Session, user: User, data: ProfileUpdate) -> dict:
    name = (data.name or "").strip()
    if len(name) < 2:
        raise _bad_request("El nombre debe tener al menos 2 caracteres")

    user.name = name
    user.phone = data.phone or None
    db.commit()
    db.refresh(user)
    return {"name": user.name, "phone": user.phone}


def change_password(db: Session, user: User, data: ChangePasswordRequest) -> None:
    if not data.current_password or not data.new_password:
        raise _bad_request("Todos los campos son requeridos")
    if len(data.new_password) < MIN_PASSWORD_LENGTH:
        raise _bad_request("La nueva contraseña debe tener al menos 6 caracteres")
    if not verify_password(data.current_password, user.password_hash):
        raise _bad_request("La contraseña actual es incorrecta")

    user.password_hash = hash_password(data.new_password)
    db.commit()
    logger.info("password_changed", user_id=user.id)


def forgot_password(db: Session, email: Optional[str]) -> None:
    """Email a reset link when the account exists.

    The caller always answers with the same message so the endpoint does
    not reveal which emails are registered. Only the token digest is stored.
    """
    email = (email or "").strip().lower()
    if not email:
        raise _bad_request("El correo es requerido")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info("password_reset_unknown_email")
        return

    token = generate_reset_token()
    db.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=hash_reset_token(token),
            expires_at=datetime.utcnow()
            + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
        )
    )
    db.commit()

    link = f"{settings.FRONTEND_URL.rstrip('/')}/restablecer-contrasena?token={token}"
    queue_email(user.email, "Restablecer contraseña - FYTTSA", reset_password_template(link))
    logger.info("password_reset_requested", user_id=user.id)


def _lookup_reset_token(db: Session, token: Optional[str]) -> PasswordResetToken:
    record = None
    if token:
        record = (
            db.query(PasswordResetToken)
            .filter(
                PasswordResetToken.token_hash == hash_reset_token(token),
                PasswordResetToken.used_at.is_(None),
            )
            .first()
        )
    if not record:
        raise _bad_request("Token inválido o expirado")
    if record.expires_at < datetime.utcnow():
        raise _bad_request("El token ha expirado. Solicita uno nuevo.")
    return record


def verify_reset_token(db: Session, token: str) -> bool:
    try:
        _lookup_reset_token(db, token)
    except HTTPException:
        return False
    return True


def reset_password(db: Session, data: ResetPasswordRequest) -> None:
    if not data.token or not data.new_password:
        raise _bad_request("Token y nueva contraseña son requeridos")
    if len(data.new_password) < MIN_PASSWORD_LENGTH:
        raise _bad_request("La contraseña debe tener al menos 6 caracteres")

    try:
        record = _lookup_reset_token(db, data.token)
        user = db.query(User).filter(User.id == record.user_id).first()
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

        now = datetime.utcnow()
        user.password_hash = hash_password(data.new_password)
        # the used token plus any other pending one for this user
        db.query(PasswordResetToken).filter(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.used_at.is_(None),
        ).update({PasswordResetToken.used_at: now}, synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("password_reset_completed", user_id=user.id)


def logout(db: Session, token: str) -> None:
    """Revoke the presented access token until it would have expired."""
    payload = decode_token(token)
    jti = payload.get("jti")
    user_id = payload.get("id")
    exp = payload.get("exp")
    if not jti or not user_id or not exp:
        return

    if db.query(TokenBlacklist.id).filter(TokenBlacklist.jti == jti).first():
        return

    db.add(
        TokenBlacklist(
            jti=jti,
            user_id=int(user_id),
            expires_at=datetime.utcfromtimestamp(exp),
            reason="logout",
        )
    )
    db.commit()
    logger.info("user_logged_out", user_id=user_id)
