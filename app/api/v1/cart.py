from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.core.rate_limiter import limiter
from app.db.session import get_db
from app.models.user import User
from app.schemas.cart import CartItemCreate, CartItemUpdate
from app.schemas.order import CheckoutRequest
from app.services import cart_service, checkout_service
from app.services.order_service import serialize_order
from app.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def get_cart(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Get user's cart, creating it on first access"""
    return success(data=cart_service.get_cart(db, current_user.id))


@router.post(
    "/add",
    response_model=dict,
    summary="Add item to cart",
    description="""
Adds a product variant to the cart or increases the quantity of the
existing line in a single atomic statement.

Fails with 400 when the merged quantity exceeds the variant stock; the
response carries `errors=[{"availableStock": N}]`.
""",
    responses={
        200: {"description": "Item added or merged"},
        400: {"description": "Invalid quantity or insufficient stock"},
        404: {"description": "Product or variant not found"},
    },
)
def add_to_cart(
    cart_item: CartItemCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    result = cart_service.add_item(db, current_user.id, cart_item)
    message = "Producto agregado al carrito" if result.get("added") else "Cantidad actualizada"
    return success(data=result, message=message)


@router.patch("/item/{item_id}", response_model=dict)
def update_cart_item(
    item_id: int,
    payload: CartItemUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    item = cart_service.update_item(db, current_user.id, item_id, payload.quantity)
    return success(
        data={"id": item.id, "quantity": item.quantity},
        message="Cantidad actualizada",
    )


@router.delete("/item/{item_id}", response_model=dict)
def remove_cart_item(
    item_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    cart_service.remove_item(db, current_user.id, item_id)
    return success(message="Item eliminado")


@router.delete("/clear", response_model=dict)
def clear_cart(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    cart_service.clear_cart(db, current_user.id)
    return success(message="Carrito vaciado")


@router.post("/checkout", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def checkout_from_cart(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Place an order from the cart without a shipping address."""
    order = checkout_service.place_order(db, current_user, CheckoutRequest())
    return success(data=serialize_order(order), message="Pedido creado exitosamente")
