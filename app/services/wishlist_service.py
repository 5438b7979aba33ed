from typing import List, Optional

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import ProductNotFound
from app.models.product import Product
from app.models.wishlist import Wishlist

logger = structlog.get_logger()


def _duplicate() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="El producto ya está en favoritos",
    )


def _serialize(item: Wishlist) -> dict:
    product = item.product
    summary = None
    if product is not None:
        summary = {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "image": product.first_image,
        }
    return {
        "id": item.id,
        "product_id": item.product_id,
        "created_at": item.created_at,
        "product": summary,
    }


class WishlistService:
    """Per-user favorites; a product appears at most once per user."""

    @staticmethod
    def _find(db: Session, user_id: int, product_id: int) -> Optional[Wishlist]:
        return (
            db.query(Wishlist)
            .filter(Wishlist.user_id == user_id, Wishlist.product_id == product_id)
            .first()
        )

    @staticmethod
    def add(db: Session, user_id: int, product_id: Optional[int]) -> dict:
        if product_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="product_id es requerido",
            )
        if not db.query(Product.id).filter(Product.id == product_id).first():
            raise ProductNotFound()
        if WishlistService._find(db, user_id, product_id):
            raise _duplicate()

        item = Wishlist(user_id=user_id, product_id=product_id)
        db.add(item)
        try:
            db.commit()
        except IntegrityError:
            # concurrent insert hit the unique (user_id, product_id)
            db.rollback()
            raise _duplicate() from None
        db.refresh(item)

        logger.info("wishlist_item_added", user_id=user_id, product_id=product_id)
        return _serialize(item)

    @staticmethod
    def remove(db: Session, user_id: int, product_id: int) -> None:
        item = WishlistService._find(db, user_id, product_id)
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Producto no encontrado en favoritos",
            )
        db.delete(item)
        db.commit()
        logger.info("wishlist_item_removed", user_id=user_id, product_id=product_id)

    @staticmethod
    def list_items(db: Session, user_id: int) -> List[dict]:
        items = (
            db.query(Wishlist)
            .options(joinedload(Wishlist.product).selectinload(Product.images))
            .filter(Wishlist.user_id == user_id)
            .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
            .all()
        )
        return [_serialize(item) for item in items]

    @staticmethod
    def contains(db: Session, user_id: int, product_id: int) -> bool:
        return WishlistService._find(db, user_id, product_id) is not None
