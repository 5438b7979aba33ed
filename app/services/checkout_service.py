from typing import Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import OrderNotFound
from app.models.address import Address
from app.models.cart import CartItem
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from app.models.product import ProductVariant
from app.models.user import User
from app.schemas.order import CheckoutRequest
from app.services.cart_service import find_cart
from app.utils.email import queue_email
from app.utils.email_templates import order_confirmation_template

logger = structlog.get_logger()


def shipping_for(subtotal: float) -> float:
    if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return 0.0
    return settings.SHIPPING_COST


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _stock_error(item: CartItem, variant: Optional[ProductVariant]) -> HTTPException:
    name = item.product.name if item.product else f"producto {item.product_id}"
    size = variant.size if variant else "-"
    return _bad_request(f"Stock insuficiente para {name} ({size})")


def place_order(db: Session, user: User, data: CheckoutRequest) -> Order:
    """Turn the user's cart into an order.

    Everything happens in one transaction: variants are locked in
    ascending id order, stock is decremented with a guarded UPDATE and the
    cart is emptied. Any failure rolls the whole checkout back.
    """
    try:
        cart = find_cart(db, user.id)
        if not cart:
            raise _bad_request("No tienes un carrito")

        cart_items = (
            db.query(CartItem)
            .filter(CartItem.cart_id == cart.id)
            .order_by(CartItem.id)
            .all()
        )
        if not cart_items:
            raise _bad_request("El carrito está vacío")

        requested = {}
        for item in cart_items:
            requested[item.variant_id] = requested.get(item.variant_id, 0) + item.quantity

        locked_variants = {
            variant.id: variant
            for variant in (
                db.query(ProductVariant)
                .filter(ProductVariant.id.in_(sorted(requested)))
                .order_by(ProductVariant.id)
                .with_for_update()
                .all()
            )
        }

        for item in cart_items:
            variant = locked_variants.get(item.variant_id)
            if variant is None or requested[item.variant_id] > variant.stock:
                raise _stock_error(item, variant)

        subtotal = round(sum(item.product.price * item.quantity for item in cart_items), 2)

        address_snapshot = None
        if data.address_id is not None:
            address = (
                db.query(Address)
                .filter(Address.id == data.address_id, Address.user_id == user.id)
                .first()
            )
            if not address:
                raise _bad_request("Dirección no encontrada")
            address_snapshot = address.snapshot()

        shipping_cost = shipping_for(subtotal)

        order = Order(
            user_id=user.id,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            total=round(subtotal + shipping_cost, 2),
            status=OrderStatus.PENDING,
            payment_method=data.payment_method or "pending",
            payment_status=PaymentStatus.PENDING,
            shipping_address_id=data.address_id,
            shipping_address_snapshot=address_snapshot,
            notes=data.notes,
        )
        db.add(order)
        db.flush()

        for item in cart_items:
            variant = locked_variants[item.variant_id]
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    product_name=item.product.name,
                    size=variant.size,
                    color_name=variant.color_name,
                    quantity=item.quantity,
                    price=item.product.price,
                )
            )

        for item in cart_items:
            quantity = requested.pop(item.variant_id, None)
            if quantity is None:
                continue
            updated = (
                db.query(ProductVariant)
                .filter(
                    ProductVariant.id == item.variant_id,
                    ProductVariant.stock >= quantity,
                )
                .update(
                    {ProductVariant.stock: ProductVariant.stock - quantity},
                    synchronize_session=False,
                )
            )
            if updated != 1:
                raise _stock_error(item, locked_variants.get(item.variant_id))

        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        db.commit()
        db.refresh(order)
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        "order_created",
        order_id=order.id,
        user_id=user.id,
        total=order.total,
        items=len(order.items),
    )
    send_order_confirmation(order, user)
    return order


def send_order_confirmation(order: Order, user: User) -> bool:
    items = [
        {
            "name": item.product_name,
            "size": item.size,
            "color_name": item.color_name,
            "quantity": item.quantity,
            "price": item.price,
        }
        for item in order.items
    ]
    html = order_confirmation_template(
        order.id,
        items,
        order.total,
        order.shipping_address_snapshot,
    )
    queued = queue_email(user.email, f"¡Pedido #{order.id} confirmado! - FYTTSA", html)
    if not queued:
        logger.warning("order_confirmation_not_queued", order_id=order.id)
    return queued


def _owned_order(db: Session, order_id: int, user_id: int) -> Order:
    order = (
        db.query(Order)
        .filter(Order.id == order_id, Order.user_id == user_id)
        .first()
    )
    if not order:
        raise OrderNotFound()
    return order


def create_payment_intent(db: Session, order_id: int, user_id: int) -> dict:
    """No payment gateway is wired in; the intent is a placeholder."""
    order = _owned_order(db, order_id, user_id)
    logger.info("payment_intent_requested", order_id=order.id, user_id=user_id)
    return {"clientSecret": None, "order_id": order.id, "amount": order.total}


def confirm_payment(db: Session, order_id: int, user_id: int, payment_method: Optional[str] = None) -> Order:
    order = _owned_order(db, order_id, user_id)
    if order.status == OrderStatus.CANCELLED:
        raise _bad_request("La orden está cancelada")

    order.payment_status = PaymentStatus.PAID
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PROCESSING
    order.payment_method = payment_method or "manual"
    db.commit()
    db.refresh(order)
    logger.info("payment_confirmed", order_id=order.id, user_id=user_id, payment_method=order.payment_method)
    return order
