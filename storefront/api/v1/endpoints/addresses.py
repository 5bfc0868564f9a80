"""
API endpoints адресов доставки пользователя.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import address_out
from storefront.core.auth import get_current_active_user
from storefront.db.database import get_db
from storefront.db.models import Address, Order, User
from storefront.schemas.address import AddressCreate, AddressUpdate

router = APIRouter()


def _owned(db: Session, user: User, address_id: str) -> Address:
    address = db.get(Address, address_id)
    if address is None or address.user_id != user.id:
        raise HTTPException(404, detail="Address not found")
    return address


def _clear_default(db: Session, user: User, keep_id: str = None) -> None:
    stmt = update(Address).where(Address.user_id == user.id).values(is_default=False)
    if keep_id:
        stmt = stmt.where(Address.id != keep_id)
    db.execute(stmt)


def _user_addresses(db: Session, user: User) -> list:
    return list(
        db.scalars(
            select(Address)
            .where(Address.user_id == user.id)
            .order_by(Address.is_default.desc(), Address.created_at.desc())
        ).all()
    )


@router.get("", response_model=dict)
def list_addresses(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Адреса пользователя, адрес по умолчанию первым."""
    return {"addresses": [address_out(a) for a in _user_addresses(db, current_user)]}


@router.post("", response_model=dict, status_code=201)
def create_address(
    payload: AddressCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Новый адрес.

    Первый адрес пользователя всегда становится адресом по умолчанию.
    """
    has_any = db.scalar(
        select(func.count()).select_from(Address).where(Address.user_id == current_user.id)
    )
    is_default = payload.is_default or not has_any
    if is_default:
        _clear_default(db, current_user)

    address = Address(user_id=current_user.id, **{**payload.model_dump(), "is_default": is_default})
    db.add(address)
    db.commit()
    db.refresh(address)
    return {"message": "Address created", "address": address_out(address)}


@router.get("/{address_id}", response_model=dict)
def get_address(
    address_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    return {"address": address_out(_owned(db, current_user, address_id))}


@router.put("/{address_id}", response_model=dict)
def update_address(
    address_id: str,
    payload: AddressUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address = _owned(db, current_user, address_id)
    changes = payload.changes()
    if changes.get("is_default"):
        _clear_default(db, current_user, keep_id=address.id)
    elif changes.get("is_default") is False and address.is_default:
        # Адрес по умолчанию снимается только выбором другого
        changes.pop("is_default")
    for key, value in changes.items():
        setattr(address, key, value)
    db.commit()
    db.refresh(address)
    return {"message": "Address updated", "address": address_out(address)}


@router.put("/{address_id}/default", response_model=dict)
def set_default_address(
    address_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    address = _owned(db, current_user, address_id)
    _clear_default(db, current_user, keep_id=address.id)
    address.is_default = True
    db.commit()
    db.refresh(address)
    return {"message": "Default address updated", "address": address_out(address)}


@router.delete("/{address_id}", response_model=dict)
def delete_address(
    address_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Удаление адреса.

    Raises:
        HTTPException: Адрес используется в заказах (400)
    """
    address = _owned(db, current_user, address_id)
    used = db.scalar(
        select(func.count()).select_from(Order).where(Order.shipping_address_id == address.id)
    )
    if used:
        raise HTTPException(400, detail="Address is used by existing orders and cannot be deleted")

    was_default = address.is_default
    db.delete(address)
    db.flush()
    if was_default:
        replacement = db.scalar(
            select(Address)
            .where(Address.user_id == current_user.id)
            .order_by(Address.created_at.desc())
            .limit(1)
        )
        if replacement is not None:
            replacement.is_default = True
    db.commit()
    return {"message": "Address deleted"}
