from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_bearer_token, get_current_active_user
from app.core.rate_limiter import limiter
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.services import auth_service
from app.utils.response import error_response, success

router = APIRouter()


@router.post(
    "/register",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Register user account",
    description="""
Creates a customer account and returns a bearer token.

Validation:
1. Name, email and password are required
2. Password must have at least 6 characters
3. Email must be unique (case-insensitive)
""",
    responses={
        201: {"description": "Registration successful"},
        400: {"description": "Missing fields, short password or email already registered"},
    },
    tags=["Authentication"],
)
@limiter.limit("5/minute")
def register(request: Request, user_in: RegisterRequest, db: Session = Depends(get_db)):
    data = auth_service.register(db, user_in)
    return success(data=data, message="Usuario registrado exitosamente")


@router.post(
    "/login",
    response_model=dict,
    summary="Login user",
    description="Validates credentials, updates `last_login` and returns a bearer token.",
    responses={
        200: {"description": "Login successful"},
        400: {"description": "Unknown email or wrong password"},
        403: {"description": "Account inactive"},
    },
    tags=["Authentication"],
)
@limiter.limit("5/minute")
def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)):
    data = auth_service.login(db, credentials)
    return success(data=data, message="Inicio de sesión exitoso")


@router.get("/me", response_model=dict, tags=["Authentication"])
def get_me(current_user: User = Depends(get_current_active_user)):
    return success(data=auth_service.profile(current_user))


@router.put("/profile", response_model=dict, tags=["Authentication"])
def update_profile(
    profile_in: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    data = auth_service.update_profile(db, current_user, profile_in)
    return success(data=data, message="Perfil actualizado")


@router.put("/change-password", response_model=dict, tags=["Authentication"])
@limiter.limit("5/minute")
def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    auth_service.change_password(db, current_user, payload)
    return success(message="Contraseña actualizada")


@router.post(
    "/forgot-password",
    response_model=dict,
    summary="Request password reset",
    description="Always answers with the same message whether or not the email exists.",
    tags=["Authentication"],
)
@limiter.limit("3/minute")
def forgot_password(request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    auth_service.forgot_password(db, payload.email)
    return success(message=auth_service.FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=dict, tags=["Authentication"])
@limiter.limit("5/minute")
def reset_password(request: Request, payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, payload)
    return success(message="Contraseña restablecida exitosamente")


@router.get("/verify-reset-token/{token}", response_model=dict, tags=["Authentication"])
def verify_reset_token(token: str, db: Session = Depends(get_db)):
    if not auth_service.verify_reset_token(db, token):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Token inválido o expirado",
            data={"valid": False},
        )
    return success(data={"valid": True})


@router.post("/logout", response_model=dict, tags=["Authentication"])
def logout(
    token: str = Depends(get_bearer_token),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    auth_service.logout(db, token)
    return success(message="Sesión cerrada")
