from typing import List

import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.exceptions import AddressNotFound
from app.models.address import Address
from app.models.order import Order
from app.schemas.address import AddressCreate, AddressUpdate

logger = structlog.get_logger()


def list_addresses(db: Session, user_id: int) -> List[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )


def get_address(db: Session, user_id: int, address_id: int) -> Address:
    address = (
        db.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id)
        .first()
    )
    if not address:
        raise AddressNotFound()
    return address


def _unset_defaults(db: Session, user_id: int, keep_id: int = None) -> None:
    query = db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({Address.is_default: False}, synchronize_session=False)


def create_address(db: Session, user_id: int, data: AddressCreate) -> Address:
    """Create an address; the user's first one always becomes the default."""
    if data.missing_fields():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Campos requeridos incompletos",
        )

    values = data.model_dump(exclude_none=True, exclude={"is_default"})
    has_addresses = db.query(Address.id).filter(Address.user_id == user_id).first() is not None
    is_default = bool(data.is_default) or not has_addresses

    try:
        if is_default:
            _unset_defaults(db, user_id)
        address = Address(user_id=user_id, is_default=is_default, **values)
        db.add(address)
        db.commit()
        db.refresh(address)
    except Exception:
        db.rollback()
        raise

    logger.info("address_created", user_id=user_id, address_id=address.id, is_default=is_default)
    return address


def update_address(db: Session, user_id: int, address_id: int, data: AddressUpdate) -> Address:
    address = get_address(db, user_id, address_id)
    values = data.model_dump(exclude_unset=True, exclude={"is_default"})

    try:
        for field, value in values.items():
            if value is not None:
                setattr(address, field, value)
        if data.is_default:
            _unset_defaults(db, user_id, keep_id=address.id)
            address.is_default = True
        db.commit()
        db.refresh(address)
    except Exception:
        db.rollback()
        raise

    logger.info("address_updated", user_id=user_id, address_id=address.id)
    return address


def set_default(db: Session, user_id: int, address_id: int) -> Address:
    """Make one address the default inside a single transaction."""
    try:
        address = get_address(db, user_id, address_id)
        _unset_defaults(db, user_id, keep_id=address.id)
        address.is_default = True
        db.commit()
        db.refresh(address)
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("address_default_set", user_id=user_id, address_id=address.id)
    return address


def delete_address(db: Session, user_id: int, address_id: int) -> None:
    """Delete an owned address.

    Orders keep their address snapshot; only the reference is cleared. If
    the default goes away, the newest remaining address takes its place.
    """
    try:
        address = get_address(db, user_id, address_id)
        was_default = address.is_default

        db.query(Order).filter(Order.shipping_address_id == address.id).update(
            {Order.shipping_address_id: None}, synchronize_session=False
        )
        db.delete(address)
        db.flush()

        if was_default:
            replacement = (
                db.query(Address)
                .filter(Address.user_id == user_id)
                .order_by(Address.created_at.desc(), Address.id.desc())
                .first()
            )
            if replacement:
                replacement.is_default = True

        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("address_deleted", user_id=user_id, address_id=address_id)
