#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import current_user_id, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import CartView, ItemIn, ItemUpdateIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("", response_model=CartView)
def get_cart(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    return get_service(db).get_cart(user_id)


@router.post("/items", response_model=CartView)
def add_item(
    payload: ItemIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.add_item(user_id, payload.variation_id, payload.quantity)
    except StorefrontError as e:
        raise http_error(e)


@router.put("/items/{item_id}", response_model=CartView)
def update_item(
    item_id: int,
    payload: ItemUpdateIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.update_item(user_id, item_id, payload.quantity)
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/items/{item_id}", response_model=CartView)
def remove_item(
    item_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.remove_item(user_id, item_id)
    except StorefrontError as e:
        raise http_error(e)


@router.delete("", response_model=CartView)
def clear_cart(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.clear(user_id)
    except StorefrontError as e:
        raise http_error(e)
