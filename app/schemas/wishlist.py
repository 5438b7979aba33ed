from pydantic import BaseModel
from typing import Optional


class WishlistCreate(BaseModel):
    product_id: Optional[int] = None
