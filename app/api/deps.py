from datetime import datetime

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.session import get_db
from app.models.token_blacklist import TokenBlacklist
from app.models.user import User, UserRole

logger = structlog.get_logger()


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(request: Request) -> str:
    """Raw bearer token from the Authorization header."""
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Token no proporcionado")
    return token


def _token_claims(db: Session, token: str) -> dict:
    claims = decode_token(token)
    jti = claims.get("jti")
    revoked = not jti or db.query(TokenBlacklist.id).filter(
        TokenBlacklist.jti == jti,
        TokenBlacklist.expires_at > datetime.utcnow(),
    ).first() is not None
    if revoked:
        raise _unauthorized("Token revocado")
    return claims


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """User named by a valid, non-revoked bearer token."""
    claims = _token_claims(db, token)
    user_id = claims.get("id")
    if not user_id:
        raise _unauthorized("Token inválido")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise _unauthorized("Usuario no encontrado")
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cuenta desactivada")
    return current_user


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_active_user),
) -> User:
    action = f"{request.method} {request.url.path}"
    if current_user.role != UserRole.ADMIN:
        logger.warning("admin_access_denied", action=action, user_id=current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acceso denegado")

    logger.info(
        "admin_action",
        action=action,
        admin_user_id=current_user.id,
        client_ip=request.client.host if request.client else None,
    )
    return current_user
