from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.product import ProductCreate, ProductUpdate
from app.services import product_service
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_products(
    category: Optional[int] = Query(None, description="Category id"),
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Products with their images and variants"""
    products = product_service.list_products(db, category_id=category, limit=limit)
    return success(data=[product_service.serialize_product(p) for p in products])


@router.get("/search", response_model=dict)
def search_products(
    q: str = Query("", max_length=100),
    db: Session = Depends(get_db),
):
    products = product_service.search_products(db, q)
    return success(data=[product_service.serialize_product(p) for p in products])


@router.get("/autocomplete", response_model=dict)
def autocomplete(
    q: str = Query("", max_length=100),
    db: Session = Depends(get_db),
):
    return success(data=product_service.autocomplete(db, q))


@router.get("/{product_id}", response_model=dict)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = product_service.get_product(db, product_id)
    variants = product_service.ordered_variants(db, product_id)
    return success(data=product_service.serialize_product(product, variants))


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_product(
    product_in: ProductCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = product_service.create_product(db, product_in)
    return success(data=product_service.serialize_product(product), message="Producto creado")


@router.put("/{product_id}", response_model=dict)
def update_product(
    product_id: int,
    product_in: ProductUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = product_service.update_product(db, product_id, product_in)
    return success(data=product_service.serialize_product(product), message="Producto actualizado")


@router.delete(
    "/{product_id}",
    response_model=dict,
    summary="Delete product",
    description="""
Deletes the product with its images, variants and any cart or wishlist
rows pointing at it, in one transaction. Order items keep their snapshot.
Image files are removed after commit.
""",
)
def delete_product(
    product_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_service.delete_product(db, product_id)
    return success(message="Producto eliminado")


@router.post("/{product_id}/images", response_model=dict, status_code=status.HTTP_201_CREATED)
def upload_image(
    product_id: int,
    image: UploadFile = File(...),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_image = product_service.add_image(db, product_id, image)
    return success(data=product_service.serialize_image(product_image), message="Imagen agregada")


@router.delete("/{product_id}/images/{image_id}", response_model=dict)
def delete_image(
    product_id: int,
    image_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_service.delete_image(db, product_id, image_id)
    return success(message="Imagen eliminada")
