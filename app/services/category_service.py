from typing import List, Optional

import structlog
from fastapi import HTTPException, UploadFile, status
from slugify import slugify
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CategoryNotFound
from app.models.category import Category
from app.models.product import Product
from app.utils.image_upload import delete_upload, save_upload

logger = structlog.get_logger()


def serialize_category(category: Category) -> dict:
    return {
        "id": category.id,
        "parent_id": category.parent_id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "image_url": category.image_url,
        "is_active": category.is_active,
        "display_order": category.display_order,
        "created_at": category.created_at,
    }


def list_active(db: Session) -> List[Category]:
    return (
        db.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.display_order.asc(), Category.name.asc())
        .all()
    )


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise CategoryNotFound()
    return category


def get_by_slug(db: Session, slug: str) -> Category:
    category = (
        db.query(Category)
        .filter(Category.slug == slug, Category.is_active.is_(True))
        .first()
    )
    if not category:
        raise CategoryNotFound()
    return category


def _slug_for(text: str) -> str:
    return slugify(text) or "categoria"


def _unique_slug(db: Session, base: str, exclude_id: Optional[int] = None) -> str:
    slug = base
    suffix = 2
    while True:
        query = db.query(Category.id).filter(Category.slug == slug)
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if not query.first():
            return slug
        slug = f"{base}-{suffix}"
        suffix += 1


def _check_parent(db: Session, parent_id: Optional[int], category_id: Optional[int] = None) -> None:
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Una categoría no puede ser su propia categoría padre",
        )
    if not db.query(Category.id).filter(Category.id == parent_id).first():
        raise CategoryNotFound()


def create_category(
    db: Session,
    *,
    name: Optional[str],
    slug: Optional[str] = None,
    description: Optional[str] = None,
    display_order: Optional[int] = None,
    parent_id: Optional[int] = None,
    image: Optional[UploadFile] = None,
) -> Category:
    if not (name or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El nombre es requerido",
        )
    _check_parent(db, parent_id)

    base_slug = _slug_for(slug or name)
    image_url = save_upload(image, settings.CATEGORY_UPLOAD_DIR) if image and image.filename else None

    category = Category(
        name=name.strip(),
        slug=_unique_slug(db, base_slug),
        description=description,
        image_url=image_url,
        display_order=display_order or 0,
        parent_id=parent_id,
    )
    db.add(category)
    try:
        db.commit()
    except Exception:
        db.rollback()
        if image_url:
            delete_upload(settings.CATEGORY_UPLOAD_DIR, image_url)
        raise
    db.refresh(category)
    logger.info("category_created", category_id=category.id, slug=category.slug)
    return category


def update_category(
    db: Session,
    category_id: int,
    *,
    name: Optional[str] = None,
    slug: Optional[str] = None,
    description: Optional[str] = None,
    display_order: Optional[int] = None,
    is_active: Optional[bool] = None,
    parent_id: Optional[int] = None,
    image: Optional[UploadFile] = None,
) -> Category:
    """Update a category; a new image replaces and removes the old file."""
    category = get_category(db, category_id)
    _check_parent(db, parent_id, category_id)

    if name is not None:
        if not name.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El nombre es requerido",
            )
        category.name = name.strip()
    if slug or name:
        category.slug = _unique_slug(db, _slug_for(slug or category.name), exclude_id=category.id)
    if description is not None:
        category.description = description
    if display_order is not None:
        category.display_order = display_order
    if is_active is not None:
        category.is_active = is_active
    if parent_id is not None:
        category.parent_id = parent_id

    old_image = None
    if image and image.filename:
        old_image = category.image_url
        category.image_url = save_upload(image, settings.CATEGORY_UPLOAD_DIR)

    db.commit()
    db.refresh(category)
    if old_image:
        delete_upload(settings.CATEGORY_UPLOAD_DIR, old_image)
    logger.info("category_updated", category_id=category.id)
    return category


def delete_category(db: Session, category_id: int) -> None:
    """Delete a category. Its products stay, without a category."""
    try:
        category = get_category(db, category_id)
        image_url = category.image_url

        db.query(Product).filter(Product.category_id == category_id).update(
            {Product.category_id: None}, synchronize_session=False
        )
        db.query(Category).filter(Category.parent_id == category_id).update(
            {Category.parent_id: None}, synchronize_session=False
        )
        db.delete(category)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    if image_url:
        delete_upload(settings.CATEGORY_UPLOAD_DIR, image_url)
    logger.info("category_deleted", category_id=category_id)
