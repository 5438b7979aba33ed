from typing import List, Optional

import structlog
from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import ProductNotFound, VariantNotFound
from app.models.cart import CartItem
from app.models.category import Category
from app.models.order import OrderItem
from app.models.product import Product, ProductImage, ProductVariant
from app.models.wishlist import Wishlist
from app.schemas.product import ProductCreate, ProductUpdate, VariantCreate, VariantUpdate
from app.utils.image_upload import delete_upload, save_upload

logger = structlog.get_logger()

AUTOCOMPLETE_LIMIT = 8


def serialize_image(image: ProductImage) -> dict:
    return {"id": image.id, "image_url": image.image_url, "sort_order": image.sort_order}


def serialize_variant(variant: ProductVariant) -> dict:
    return {
        "id": variant.id,
        "product_id": variant.product_id,
        "color_name": variant.color_name,
        "color_hex": variant.color_hex,
        "size": variant.size,
        "gender": variant.gender,
        "stock": variant.stock,
        "code": variant.code,
        "key_code": variant.key_code,
    }


def serialize_product(product: Product, variants: Optional[List[ProductVariant]] = None) -> dict:
    return {
        "id": product.id,
        "category_id": product.category_id,
        "category_name": product.category_name,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "brand": product.brand,
        "sold_info": product.sold_info,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
        "images": [serialize_image(image) for image in product.images],
        "variants": [
            serialize_variant(variant)
            for variant in (variants if variants is not None else product.variants)
        ],
    }


def _with_children(query):
    return query.options(
        selectinload(Product.images),
        selectinload(Product.variants),
        selectinload(Product.category),
    )


def list_products(db: Session, category_id: Optional[int] = None, limit: Optional[int] = None) -> List[Product]:
    query = _with_children(db.query(Product))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    query = query.order_by(Product.id)
    if limit:
        query = query.limit(limit)
    return query.all()


def search_products(db: Session, q: str) -> List[Product]:
    term = (q or "").strip()
    if not term:
        return []
    pattern = f"%{term.lower()}%"
    return (
        _with_children(db.query(Product))
        .filter(
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.description).like(pattern),
            )
        )
        .order_by(Product.id)
        .all()
    )


def autocomplete(db: Session, q: str) -> List[dict]:
    term = (q or "").strip()
    if not term:
        return []
    products = (
        db.query(Product)
        .options(selectinload(Product.images))
        .filter(func.lower(Product.name).like(f"%{term.lower()}%"))
        .order_by(Product.name)
        .limit(AUTOCOMPLETE_LIMIT)
        .all()
    )
    return [
        {"id": p.id, "name": p.name, "price": p.price, "image": p.first_image}
        for p in products
    ]


def get_product(db: Session, product_id: int) -> Product:
    product = _with_children(db.query(Product)).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFound()
    return product


def ordered_variants(db: Session, product_id: int) -> List[ProductVariant]:
    return (
        db.query(ProductVariant)
        .filter(ProductVariant.product_id == product_id)
        .order_by(ProductVariant.color_hex, ProductVariant.size, ProductVariant.id)
        .all()
    )


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    if not db.query(Category.id).filter(Category.id == category_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Categoría no encontrada",
        )


def create_product(db: Session, data: ProductCreate) -> Product:
    if not (data.name or "").strip() or data.price is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nombre y precio son obligatorios",
        )
    _check_category(db, data.category_id)

    product = Product(
        category_id=data.category_id,
        name=data.name.strip(),
        description=data.description or "",
        price=data.price,
        brand=data.brand or "",
        sold_info=data.sold_info or "",
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("product_created", product_id=product.id)
    return product


def update_product(db: Session, product_id: int, data: ProductUpdate) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFound()

    values = data.model_dump(exclude_unset=True)
    if "name" in values and not (values["name"] or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nombre y precio son obligatorios",
        )
    if "price" in values and values["price"] is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nombre y precio son obligatorios",
        )
    if "category_id" in values:
        _check_category(db, values["category_id"])

    for field, value in values.items():
        if field in ("description", "brand", "sold_info") and value is None:
            value = ""
        setattr(product, field, value)

    db.commit()
    db.refresh(product)
    logger.info("product_updated", product_id=product.id)
    return product


def delete_product(db: Session, product_id: int) -> None:
    """Delete a product and everything hanging off it in one transaction.

    Order items keep their name/size/color/price snapshot; only their
    references to the product and its variants are cleared. Image files
    are removed once the rows are gone.
    """
    try:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound()

        filenames = [image.image_url for image in product.images]
        variant_ids = [
            row.id
            for row in db.query(ProductVariant.id).filter(ProductVariant.product_id == product_id)
        ]

        db.query(OrderItem).filter(OrderItem.product_id == product_id).update(
            {OrderItem.product_id: None, OrderItem.variant_id: None},
            synchronize_session=False,
        )
        if variant_ids:
            db.query(OrderItem).filter(OrderItem.variant_id.in_(variant_ids)).update(
                {OrderItem.variant_id: None},
                synchronize_session=False,
            )
        db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
        db.query(Wishlist).filter(Wishlist.product_id == product_id).delete(synchronize_session=False)
        db.query(ProductImage).filter(ProductImage.product_id == product_id).delete(synchronize_session=False)
        db.query(ProductVariant).filter(ProductVariant.product_id == product_id).delete(synchronize_session=False)
        db.query(Product).filter(Product.id == product_id).delete(synchronize_session=False)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    for filename in filenames:
        delete_upload(settings.PRODUCT_UPLOAD_DIR, filename)
    logger.info("product_deleted", product_id=product_id, images=len(filenames))


def add_image(db: Session, product_id: int, file: UploadFile) -> ProductImage:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFound()

    filename = save_upload(file, settings.PRODUCT_UPLOAD_DIR)
    next_order = (
        db.query(func.coalesce(func.max(ProductImage.sort_order), -1))
        .filter(ProductImage.product_id == product_id)
        .scalar()
        + 1
    )
    image = ProductImage(product_id=product_id, image_url=filename, sort_order=next_order)
    db.add(image)
    try:
        db.commit()
    except Exception:
        db.rollback()
        delete_upload(settings.PRODUCT_UPLOAD_DIR, filename)
        raise
    db.refresh(image)
    logger.info("product_image_added", product_id=product_id, image_id=image.id)
    return image


def delete_image(db: Session, product_id: int, image_id: int) -> None:
    image = (
        db.query(ProductImage)
        .filter(ProductImage.id == image_id, ProductImage.product_id == product_id)
        .first()
    )
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Imagen no encontrada")

    filename = image.image_url
    db.delete(image)
    db.commit()
    delete_upload(settings.PRODUCT_UPLOAD_DIR, filename)
    logger.info("product_image_deleted", product_id=product_id, image_id=image_id)


# Variants

def create_variant(db: Session, data: VariantCreate) -> ProductVariant:
    if not db.query(Product.id).filter(Product.id == data.product_id).first():
        raise ProductNotFound()
    if data.stock is None or data.stock < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El stock no puede ser negativo",
        )

    variant = ProductVariant(**data.model_dump())
    db.add(variant)
    db.commit()
    db.refresh(variant)
    logger.info("variant_created", product_id=variant.product_id, variant_id=variant.id)
    return variant


def update_variant(db: Session, variant_id: int, data: VariantUpdate) -> ProductVariant:
    variant = db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
    if not variant:
        raise VariantNotFound()

    values = data.model_dump(exclude_unset=True)
    if "stock" in values and (values["stock"] is None or values["stock"] < 0):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El stock no puede ser negativo",
        )
    for field, value in values.items():
        setattr(variant, field, value)

    db.commit()
    db.refresh(variant)
    logger.info("variant_updated", variant_id=variant.id, stock=variant.stock)
    return variant


def delete_variant(db: Session, variant_id: int) -> None:
    try:
        variant = db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
        if not variant:
            raise VariantNotFound()

        db.query(OrderItem).filter(OrderItem.variant_id == variant_id).update(
            {OrderItem.variant_id: None}, synchronize_session=False
        )
        db.query(CartItem).filter(CartItem.variant_id == variant_id).delete(synchronize_session=False)
        db.delete(variant)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("variant_deleted", variant_id=variant_id)
