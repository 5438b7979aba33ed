from pydantic import BaseModel, field_validator
from pydantic.networks import validate_email
from typing import Optional

from app.schemas.order import clean_text


class ContactRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        if not value or not value.strip():
            return None
        return validate_email(value.strip())[1]

    @field_validator("name", "subject", "message", "phone")
    @classmethod
    def strip_markup(cls, value: Optional[str]) -> Optional[str]:
        return clean_text(value)
