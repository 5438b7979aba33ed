from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.product import VariantCreate, VariantUpdate
from app.services import product_service
from app.utils.response import success

router = APIRouter()


@router.get("/{product_id}", response_model=dict)
def list_variants(product_id: int, db: Session = Depends(get_db)):
    """Variants of a product ordered by color then size"""
    variants = product_service.ordered_variants(db, product_id)
    return success(data=[product_service.serialize_variant(v) for v in variants])


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_variant(
    variant_in: VariantCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    variant = product_service.create_variant(db, variant_in)
    return success(data=product_service.serialize_variant(variant), message="Variante creada")


@router.put("/{variant_id}", response_model=dict)
def update_variant(
    variant_id: int,
    variant_in: VariantUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    variant = product_service.update_variant(db, variant_id, variant_in)
    return success(data=product_service.serialize_variant(variant), message="Variante actualizada")


@router.delete("/{variant_id}", response_model=dict)
def delete_variant(
    variant_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_service.delete_variant(db, variant_id)
    return success(message="Variante eliminada")
