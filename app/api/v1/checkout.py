from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.core.rate_limiter import limiter
from app.db.session import get_db
from app.models.user import User
from app.schemas.order import CheckoutRequest, ConfirmPaymentRequest, PaymentIntentRequest
from app.services import checkout_service
from app.services.order_service import serialize_order
from app.utils.response import success

router = APIRouter()


@router.post(
    "/",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create order from cart",
    description="""
Creates an order from the authenticated user's cart.

Process:
1. Validates the cart exists and is not empty
2. Locks variants in ascending id order and checks stock
3. Snapshots the shipping address when `address_id` is given
4. Computes subtotal and shipping (free from the configured threshold)
5. Creates order and order items, decrements stock, clears the cart
6. Queues the confirmation email after commit
""",
    responses={
        201: {"description": "Order created"},
        400: {"description": "No cart, empty cart, insufficient stock or unknown address"},
        401: {"description": "Authentication required"},
    },
    tags=["Checkout"],
)
@limiter.limit("10/minute")
def checkout(
    request: Request,
    payload: CheckoutRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = checkout_service.place_order(db, current_user, payload)
    return success(data=serialize_order(order), message="Pedido creado exitosamente")


@router.post("/create-payment-intent", response_model=dict, tags=["Checkout"])
def create_payment_intent(
    payload: PaymentIntentRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    data = checkout_service.create_payment_intent(db, payload.order_id, current_user.id)
    return success(data=data, message="Pasarela de pago no configurada")


@router.post("/confirm-payment", response_model=dict, tags=["Checkout"])
def confirm_payment(
    payload: ConfirmPaymentRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    order = checkout_service.confirm_payment(
        db, payload.order_id, current_user.id, payload.payment_method
    )
    return success(data=serialize_order(order), message="Pago confirmado")
