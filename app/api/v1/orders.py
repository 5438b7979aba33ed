from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user, require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.order import OrderStatusUpdate
from app.services import order_service
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_orders(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """All orders, newest first"""
    orders = order_service.list_orders(db)
    return success(data=[order_service.serialize_order(o, include_items=False) for o in orders])


@router.get("/user/{user_id}", response_model=dict)
def get_user_orders(
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Orders of one user with their items; owner or admin only"""
    orders = order_service.list_user_orders(db, user_id, current_user)
    return success(data=[order_service.serialize_order(o) for o in orders])


@router.get("/{order_id}", response_model=dict)
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = order_service.get_order_for(db, order_id, current_user)
    return success(data=order_service.serialize_order(order))


@router.put(
    "/{order_id}",
    response_model=dict,
    summary="Update order status",
    description="""
Moves an order along `pending → processing → shipped → completed`, or to
`cancelled` from any non-terminal state (restoring stock). A status email
is queued for the customer after the change is committed.
""",
)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    order = order_service.update_status(db, order_id, payload.status, admin.id)
    return success(data=order_service.serialize_order(order), message="Estado actualizado")


@router.delete("/{order_id}", response_model=dict)
def delete_order(
    order_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    order_service.delete_order(db, order_id)
    return success(message="Orden eliminada")
