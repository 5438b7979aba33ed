from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.address import AddressCreate, AddressResponse, AddressUpdate
from app.services import address_service
from app.utils.response import success

router = APIRouter()


def _dump(address) -> dict:
    return AddressResponse.model_validate(address).model_dump()


@router.get("/", response_model=dict)
def list_addresses(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    addresses = address_service.list_addresses(db, current_user.id)
    return success(data=[_dump(a) for a in addresses])


@router.get("/{address_id}", response_model=dict)
def get_address(
    address_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    return success(data=_dump(address_service.get_address(db, current_user.id, address_id)))


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_address(
    address_in: AddressCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address = address_service.create_address(db, current_user.id, address_in)
    return success(data=_dump(address), message="Dirección creada")


@router.put("/{address_id}", response_model=dict)
def update_address(
    address_id: int,
    address_in: AddressUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address = address_service.update_address(db, current_user.id, address_id, address_in)
    return success(data=_dump(address), message="Dirección actualizada")


@router.delete("/{address_id}", response_model=dict)
def delete_address(
    address_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address_service.delete_address(db, current_user.id, address_id)
    return success(message="Dirección eliminada")


@router.put("/{address_id}/default", response_model=dict)
def set_default_address(
    address_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address = address_service.set_default(db, current_user.id, address_id)
    return success(data=_dump(address), message="Dirección predeterminada actualizada")
