from pydantic import BaseModel
from typing import Optional


class CartItemCreate(BaseModel):
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: Optional[int] = None
