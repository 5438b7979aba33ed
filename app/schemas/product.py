from pydantic import BaseModel
from typing import Optional


class ProductCreate(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    brand: Optional[str] = None
    sold_info: Optional[str] = None


class ProductUpdate(ProductCreate):
    pass


class VariantCreate(BaseModel):
    product_id: int
    color_name: Optional[str] = None
    color_hex: Optional[str] = None
    size: Optional[str] = None
    gender: Optional[str] = None
    stock: int = 0
    code: Optional[str] = None
    key_code: Optional[str] = None


class VariantUpdate(BaseModel):
    color_name: Optional[str] = None
    color_hex: Optional[str] = None
    size: Optional[str] = None
    gender: Optional[str] = None
    stock: Optional[int] = None
    code: Optional[str] = None
    key_code: Optional[str] = None
