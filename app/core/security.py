import hashlib
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt silently ignores anything past this
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="La contraseña es demasiado larga",
        )
    return pwd_context.hash(password)


def verify_password(candidate: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(candidate, password_hash)
    except (ValueError, TypeError):
        return False


def create_access_token(claims: dict, lifetime: Optional[timedelta] = None) -> str:
    """Sign ``claims`` as a JWT.

    ``exp`` and a fresh ``jti`` are added; the jti is what logout revokes.
    """
    lifetime = lifetime or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {
        **claims,
        "exp": datetime.utcnow() + lifetime,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_reset_token(token: str) -> str:
    """Only the sha256 digest of a reset token is ever stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
