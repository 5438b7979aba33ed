from datetime import datetime
from typing import Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.core.exceptions import (
    CartItemNotFound,
    InsufficientStock,
    ProductNotFound,
    VariantNotFound,
)
from app.models.cart import Cart, CartItem
from app.models.product import Product, ProductVariant
from app.schemas.cart import CartItemCreate

logger = structlog.get_logger()

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(db: Session):
    """Return the dialect ``insert`` that supports ON CONFLICT clauses."""
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}") from None


def _invalid_quantity() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="La cantidad debe ser al menos 1",
    )


def find_cart(db: Session, user_id: int) -> Optional[Cart]:
    return db.query(Cart).filter(Cart.user_id == user_id).first()


def ensure_cart(db: Session, user_id: int) -> Cart:
    """Create the user's cart if missing, without committing.

    Two concurrent first requests both end up with the same row thanks to
    the unique ``user_id`` and ON CONFLICT DO NOTHING.
    """
    insert = upsert_insert(db)
    stmt = (
        insert(Cart)
        .values(user_id=user_id, created_at=datetime.utcnow())
        .on_conflict_do_nothing(index_elements=[Cart.user_id])
    )
    db.execute(stmt)
    return db.query(Cart).filter(Cart.user_id == user_id).one()


def serialize_cart_item(item: CartItem) -> dict:
    product = item.product
    variant = item.variant
    return {
        "id": item.id,
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "quantity": item.quantity,
        "name": product.name if product else None,
        "price": product.price if product else None,
        "color_name": variant.color_name if variant else None,
        "color_hex": variant.color_hex if variant else None,
        "size": variant.size if variant else None,
        "stock": variant.stock if variant else 0,
        "image": product.first_image if product else None,
    }


def get_cart(db: Session, user_id: int) -> dict:
    """Find-or-create the cart and return it with its items."""
    cart = ensure_cart(db, user_id)
    db.commit()

    items = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id)
        .order_by(CartItem.id)
        .all()
    )
    return {
        "id": cart.id,
        "items": [serialize_cart_item(item) for item in items],
    }


def add_item(db: Session, user_id: int, data: CartItemCreate) -> dict:
    """Insert the line or add to its quantity in one statement.

    Returns ``{"added": True}`` for a new line and ``{"updated": True}``
    when the quantity was merged into an existing one.
    """
    if data.quantity is None or data.quantity < 1:
        raise _invalid_quantity()

    try:
        product = db.query(Product).filter(Product.id == data.product_id).first()
        if not product:
            raise ProductNotFound()

        variant = (
            db.query(ProductVariant)
            .filter(
                ProductVariant.id == data.variant_id,
                ProductVariant.product_id == product.id,
            )
            .with_for_update()
            .first()
        )
        if not variant:
            raise VariantNotFound()
        available = variant.stock

        cart = ensure_cart(db, user_id)

        insert = upsert_insert(db)
        now = datetime.utcnow()
        stmt = insert(CartItem).values(
            cart_id=cart.id,
            product_id=product.id,
            variant_id=variant.id,
            quantity=data.quantity,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CartItem.cart_id, CartItem.product_id, CartItem.variant_id],
            set_={
                "quantity": CartItem.quantity + stmt.excluded.quantity,
                "updated_at": now,
            },
        ).returning(CartItem.id, CartItem.quantity)
        row = db.execute(stmt).one()

        if row.quantity > available:
            raise InsufficientStock(available)

        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    added = row.quantity == data.quantity
    logger.info(
        "cart_item_added" if added else "cart_item_merged",
        user_id=user_id,
        cart_item_id=row.id,
        variant_id=data.variant_id,
        quantity=row.quantity,
    )
    return {"added": True} if added else {"updated": True}


def _owned_item(db: Session, user_id: int, item_id: int) -> CartItem:
    item = (
        db.query(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .filter(CartItem.id == item_id, Cart.user_id == user_id)
        .first()
    )
    if not item:
        raise CartItemNotFound()
    return item


def update_item(db: Session, user_id: int, item_id: int, quantity: Optional[int]) -> CartItem:
    if quantity is None or quantity < 1:
        raise _invalid_quantity()

    try:
        item = _owned_item(db, user_id, item_id)
        variant = (
            db.query(ProductVariant)
            .filter(ProductVariant.id == item.variant_id)
            .with_for_update()
            .first()
        )
        if not variant:
            raise VariantNotFound()
        if quantity > variant.stock:
            raise InsufficientStock(variant.stock)

        item.quantity = quantity
        db.commit()
        db.refresh(item)
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("cart_item_updated", user_id=user_id, cart_item_id=item.id, quantity=quantity)
    return item


def remove_item(db: Session, user_id: int, item_id: int) -> None:
    item = _owned_item(db, user_id, item_id)
    db.delete(item)
    db.commit()
    logger.info("cart_item_removed", user_id=user_id, cart_item_id=item_id)


def clear_cart(db: Session, user_id: int) -> int:
    cart = find_cart(db, user_id)
    if not cart:
        return 0
    deleted = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("cart_cleared", user_id=user_id, deleted=deleted)
    return deleted
