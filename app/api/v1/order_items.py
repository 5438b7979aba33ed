from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.order import OrderItemCreate, OrderItemUpdate
from app.services import order_service
from app.utils.response import success

router = APIRouter()


def _with_totals(item) -> dict:
    data = order_service.serialize_order_item(item)
    data["order_total"] = item.order.total
    return data


@router.get("/{order_id}", response_model=dict)
def list_items(
    order_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items = order_service.list_order_items(db, order_id)
    return success(data=[order_service.serialize_order_item(item) for item in items])


@router.post("/{order_id}", response_model=dict, status_code=status.HTTP_201_CREATED)
def add_item(
    order_id: int,
    payload: OrderItemCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = order_service.add_order_item(db, order_id, payload)
    return success(data=_with_totals(item), message="Item agregado")


@router.put("/item/{item_id}", response_model=dict)
def update_item(
    item_id: int,
    payload: OrderItemUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = order_service.update_order_item(db, item_id, payload)
    return success(data=_with_totals(item), message="Item actualizado")


@router.delete("/item/{item_id}", response_model=dict)
def delete_item(
    item_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order_service.delete_order_item(db, item_id)
    return success(message="Item eliminado")
