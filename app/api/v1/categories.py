from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.models.user import User
from app.services import category_service, product_service
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_categories(db: Session = Depends(get_db)):
    """Active categories ordered by display order, then name"""
    categories = category_service.list_active(db)
    return success(data=[category_service.serialize_category(c) for c in categories])


@router.get("/slug/{slug}", response_model=dict)
def get_category_by_slug(slug: str, db: Session = Depends(get_db)):
    category = category_service.get_by_slug(db, slug)
    return success(data=category_service.serialize_category(category))


@router.get("/{category_id}", response_model=dict)
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = category_service.get_category(db, category_id)
    return success(data=category_service.serialize_category(category))


@router.get("/{category_id}/products", response_model=dict)
def get_category_products(category_id: int, db: Session = Depends(get_db)):
    category_service.get_category(db, category_id)
    products = product_service.list_products(db, category_id=category_id)
    return success(data=[product_service.serialize_product(p) for p in products])


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_category(
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    display_order: Optional[int] = Form(None),
    parent_id: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = category_service.create_category(
        db,
        name=name,
        slug=slug,
        description=description,
        display_order=display_order,
        parent_id=parent_id,
        image=image,
    )
    return success(data=category_service.serialize_category(category), message="Categoría creada")


@router.put("/{category_id}", response_model=dict)
def update_category(
    category_id: int,
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    display_order: Optional[int] = Form(None),
    is_active: Optional[bool] = Form(None),
    parent_id: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = category_service.update_category(
        db,
        category_id,
        name=name,
        slug=slug,
        description=description,
        display_order=display_order,
        is_active=is_active,
        parent_id=parent_id,
        image=image,
    )
    return success(data=category_service.serialize_category(category), message="Categoría actualizada")


@router.delete("/{category_id}", response_model=dict)
def delete_category(
    category_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category_service.delete_category(db, category_id)
    return success(message="Categoría eliminada correctamente")
