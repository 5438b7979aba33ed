from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import List, Optional
import structlog

from app.core.exceptions import InsufficientStock, OrderNotFound, ProductNotFound, VariantNotFound
from app.models.order import Order, OrderItem, OrderStatus
from app.models.product import Product, ProductVariant
from app.models.user import User, UserRole
from app.schemas.order import OrderItemCreate, OrderItemUpdate
from app.utils.email import queue_email
from app.utils.email_templates import ORDER_STATUS_INFO, order_status_update_template

logger = structlog.get_logger()

# Forward steps only; cancelling is handled separately.
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.COMPLETED,
}
TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return NEXT_STATUS.get(current) == target


def _invalid_transition() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Transición de estado inválida",
    )


def serialize_order_item(item: OrderItem) -> dict:
    variant = item.variant
    product = item.product
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "name": item.product_name,
        "size": item.size,
        "color_name": item.color_name,
        "color_hex": variant.color_hex if variant else None,
        "quantity": item.quantity,
        "price": item.price,
        "image": product.first_image if product else None,
    }


def serialize_order(order: Order, include_items: bool = True) -> dict:
    data = {
        "id": order.id,
        "user_id": order.user_id,
        "subtotal": order.subtotal,
        "shipping_cost": order.shipping_cost,
        "total": order.total,
        "status": order.status.value,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status.value,
        "shipping_address_id": order.shipping_address_id,
        "shipping_address_snapshot": order.shipping_address_snapshot,
        "notes": order.notes,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
    if include_items:
        data["items"] = [serialize_order_item(item) for item in order.items]
    return data


def _can_access(order: Order, user: User) -> bool:
    return user.role == UserRole.ADMIN or order.user_id == user.id


def list_orders(db: Session) -> List[Order]:
    return db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order_for(db: Session, order_id: int, user: User) -> Order:
    """Order visible to its owner or an admin."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound()
    if not _can_access(order, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acceso denegado")
    return order


def list_user_orders(db: Session, user_id: int, requester: User) -> List[Order]:
    if requester.role != UserRole.ADMIN and requester.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acceso denegado")
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def _restore_stock(db: Session, order: Order) -> None:
    quantities = {}
    for item in order.items:
        if item.variant_id is not None:
            quantities[item.variant_id] = quantities.get(item.variant_id, 0) + item.quantity
    if not quantities:
        return

    variants = (
        db.query(ProductVariant)
        .filter(ProductVariant.id.in_(sorted(quantities)))
        .order_by(ProductVariant.id)
        .with_for_update()
        .all()
    )
    for variant in variants:
        variant.stock += quantities[variant.id]


def update_status(db: Session, order_id: int, new_status: Optional[str], admin_id: int) -> Order:
    """Move an order to ``new_status`` following the allowed transitions.

    Cancelling gives the items' stock back in the same transaction. The
    customer notification is queued only after commit and its failure
    never undoes the change.
    """
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise _invalid_transition() from None

    try:
        order = (
            db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if not order:
            raise OrderNotFound()

        previous = order.status
        if not is_valid_transition(previous, target):
            raise _invalid_transition()

        if target == OrderStatus.CANCELLED:
            _restore_stock(db, order)

        order.status = target
        db.commit()
        db.refresh(order)
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        "order_status_changed",
        order_id=order.id,
        previous_status=previous.value,
        new_status=target.value,
        admin_user_id=admin_id,
    )
    notify_status_change(order)
    return order


def notify_status_change(order: Order) -> bool:
    customer = order.user
    if not customer or not customer.email:
        return False
    label = ORDER_STATUS_INFO.get(order.status.value, {}).get("label", order.status.value)
    queued = queue_email(
        customer.email,
        f"Pedido #{order.id}: {label}",
        order_status_update_template(order.id, order.status.value, customer.name),
    )
    if not queued:
        logger.warning("order_status_email_not_queued", order_id=order.id)
    return queued


def delete_order(db: Session, order_id: int) -> None:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound()
    db.delete(order)
    db.commit()
    logger.info("order_deleted", order_id=order_id)


# Order items (admin)

def recompute_totals(order: Order) -> None:
    """Recalculate subtotal and total from the current items, keeping shipping."""
    subtotal = round(sum(item.price * item.quantity for item in order.items), 2)
    order.subtotal = subtotal
    order.total = round(subtotal + (order.shipping_cost or 0.0), 2)


def _get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound()
    return order


def _get_item(db: Session, item_id: int) -> OrderItem:
    item = db.query(OrderItem).filter(OrderItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item no encontrado")
    return item


def list_order_items(db: Session, order_id: int) -> List[OrderItem]:
    order = _get_order(db, order_id)
    return list(order.items)


def _holds_stock(order: Order) -> bool:
    return order.status != OrderStatus.CANCELLED


def _take_stock(db: Session, variant_id: int, quantity: int) -> None:
    """Guarded decrement; fails instead of driving stock negative."""
    updated = (
        db.query(ProductVariant)
        .filter(ProductVariant.id == variant_id, ProductVariant.stock >= quantity)
        .update(
            {ProductVariant.stock: ProductVariant.stock - quantity},
            synchronize_session=False,
        )
    )
    if updated != 1:
        available = (
            db.query(ProductVariant.stock).filter(ProductVariant.id == variant_id).scalar() or 0
        )
        raise InsufficientStock(available)


def _return_stock(db: Session, variant_id: int, quantity: int) -> None:
    db.query(ProductVariant).filter(ProductVariant.id == variant_id).update(
        {ProductVariant.stock: ProductVariant.stock + quantity},
        synchronize_session=False,
    )


def add_order_item(db: Session, order_id: int, data: OrderItemCreate) -> OrderItem:
    """Add a line to an order; a live order takes the variant's stock."""
    if data.quantity is None or data.quantity < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="La cantidad debe ser al menos 1",
        )

    order = _get_order(db, order_id)
    product = db.query(Product).filter(Product.id == data.product_id).first()
    if not product:
        raise ProductNotFound()

    variant = None
    if data.variant_id is not None:
        variant = (
            db.query(ProductVariant)
            .filter(
                ProductVariant.id == data.variant_id,
                ProductVariant.product_id == product.id,
            )
            .first()
        )
        if not variant:
            raise VariantNotFound()

    try:
        item = OrderItem(
            order_id=order.id,
            product_id=product.id,
            variant_id=variant.id if variant else None,
            product_name=product.name,
            size=variant.size if variant else None,
            color_name=variant.color_name if variant else None,
            quantity=data.quantity,
            price=data.price if data.price is not None else product.price,
        )
        if variant and _holds_stock(order):
            _take_stock(db, variant.id, data.quantity)
        order.items.append(item)
        recompute_totals(order)
        db.commit()
        db.refresh(item)
    except Exception:
        db.rollback()
        raise

    logger.info("order_item_added", order_id=order.id, order_item_id=item.id)
    return item


def update_order_item(db: Session, item_id: int, data: OrderItemUpdate) -> OrderItem:
    item = _get_item(db, item_id)
    if data.quantity is not None and data.quantity < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="La cantidad debe ser al menos 1",
        )

    try:
        if data.quantity is not None:
            delta = data.quantity - item.quantity
            if item.variant_id is not None and _holds_stock(item.order):
                if delta > 0:
                    _take_stock(db, item.variant_id, delta)
                elif delta < 0:
                    _return_stock(db, item.variant_id, -delta)
            item.quantity = data.quantity
        if data.price is not None:
            item.price = data.price

        db.flush()
        recompute_totals(item.order)
        db.commit()
        db.refresh(item)
    except Exception:
        db.rollback()
        raise

    logger.info("order_item_updated", order_id=item.order_id, order_item_id=item.id)
    return item


def delete_order_item(db: Session, item_id: int) -> None:
    item = _get_item(db, item_id)
    order = item.order
    try:
        if item.variant_id is not None and _holds_stock(order):
            _return_stock(db, item.variant_id, item.quantity)
        order.items.remove(item)
        recompute_totals(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("order_item_deleted", order_id=order.id, order_item_id=item_id)
