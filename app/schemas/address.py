from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


REQUIRED_ADDRESS_FIELDS = (
    "full_name",
    "phone",
    "street",
    "exterior_number",
    "neighborhood",
    "city",
    "state",
    "postal_code",
)


class AddressBase(BaseModel):
    label: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    street: Optional[str] = None
    exterior_number: Optional[str] = None
    interior_number: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    references_text: Optional[str] = None
    is_default: Optional[bool] = None


class AddressCreate(AddressBase):
    def missing_fields(self) -> list[str]:
        return [
            field for field in REQUIRED_ADDRESS_FIELDS
            if not (getattr(self, field) or "").strip()
        ]


class AddressUpdate(AddressBase):
    pass


class AddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    label: str
    full_name: str
    phone: str
    street: str
    exterior_number: str
    interior_number: Optional[str] = None
    neighborhood: str
    city: str
    state: str
    postal_code: str
    country: str
    references_text: Optional[str] = None
    is_default: bool
    created_at: datetime
