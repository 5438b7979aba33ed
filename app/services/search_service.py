from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.models.category import Category
from app.models.product import Product, ProductVariant


def _summary(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "image": product.first_image,
    }


def search(
    db: Session,
    q: str = "",
    size: Optional[str] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: str = "relevance",
) -> dict:
    """Filtered product search.

    ``color`` matches a variant's hex value. Products are returned once
    even when several variants match.
    """
    query = db.query(Product).options(selectinload(Product.images))
    term = (q or "").strip().lower()
    if term:
        query = query.filter(func.lower(Product.name).like(f"%{term}%"))

    if size or color:
        variant_match = db.query(ProductVariant.product_id)
        if size:
            variant_match = variant_match.filter(ProductVariant.size == size)
        if color:
            variant_match = variant_match.filter(ProductVariant.color_hex == color)
        query = query.filter(Product.id.in_(variant_match))

    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    if sort == "price_asc":
        query = query.order_by(Product.price.asc(), Product.id)
    elif sort == "price_desc":
        query = query.order_by(Product.price.desc(), Product.id)
    else:
        query = query.order_by(Product.id)

    products = [_summary(product) for product in query.all()]
    return {"products": products, "total": len(products)}


def autocomplete(db: Session, q: str = "") -> dict:
    term = (q or "").strip().lower()
    if not term:
        return {"products": [], "categories": [], "suggestions": []}
    pattern = f"%{term}%"

    products = (
        db.query(Product)
        .options(selectinload(Product.images))
        .filter(func.lower(Product.name).like(pattern))
        .order_by(Product.name.asc())
        .limit(5)
        .all()
    )
    categories = (
        db.query(Category)
        .filter(func.lower(Category.name).like(pattern))
        .order_by(Category.name.asc())
        .limit(5)
        .all()
    )
    sizes = (
        db.query(ProductVariant.size)
        .filter(ProductVariant.size.isnot(None), func.lower(ProductVariant.size).like(pattern))
        .distinct()
        .order_by(ProductVariant.size)
        .limit(5)
        .all()
    )
    return {
        "products": [_summary(product) for product in products],
        "categories": [{"id": c.id, "name": c.name, "slug": c.slug} for c in categories],
        "suggestions": [row.size for row in sizes],
    }
