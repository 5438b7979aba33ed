from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.wishlist import WishlistCreate
from app.services.wishlist_service import WishlistService
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def list_favorites(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Favorites with a product summary, newest first."""
    return success(data=WishlistService.list_items(db, current_user.id))


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def add_favorite(
    payload: WishlistCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    item = WishlistService.add(db, current_user.id, payload.product_id)
    return success(data=item, message="Producto agregado a favoritos")


@router.get("/check/{product_id}", response_model=dict)
def is_favorite(
    product_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    return success(data={"in_wishlist": WishlistService.contains(db, current_user.id, product_id)})


@router.delete("/{product_id}", response_model=dict)
def remove_favorite(
    product_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    WishlistService.remove(db, current_user.id, product_id)
    return success(message="Producto eliminado de favoritos")
