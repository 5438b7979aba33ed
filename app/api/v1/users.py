from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import RoleUpdate, UserResponse
from app.services import user_service
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every user with order count and total spent."""
    return success(data=user_service.list_users(db))


# Declared before /{user_id} so "stats" is not parsed as an id.
@router.get("/stats/dashboard", response_model=dict)
def dashboard(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(data=user_service.dashboard_stats(db))


@router.get("/{user_id}", response_model=dict)
def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(data=user_service.get_user_detail(db, user_id))


@router.patch("/{user_id}/role", response_model=dict)
def change_role(
    user_id: int,
    payload: RoleUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.change_role(db, user_id, payload.role, admin.id)
    return success(
        data=UserResponse.model_validate(user).model_dump(),
        message="Rol actualizado",
    )
