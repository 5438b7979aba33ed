from typing import Optional

import bleach
from pydantic import BaseModel, field_validator


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


class CheckoutRequest(BaseModel):
    address_id: Optional[int] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        sanitized = clean_text(value)
        if sanitized and len(sanitized) > 500:
            raise ValueError("Las notas no pueden exceder 500 caracteres")
        return sanitized or None


class PaymentIntentRequest(BaseModel):
    order_id: int


class ConfirmPaymentRequest(BaseModel):
    order_id: int
    payment_method: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class OrderItemCreate(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    price: Optional[float] = None


class OrderItemUpdate(BaseModel):
    quantity: Optional[int] = None
    price: Optional[float] = None
