# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.api.deps import current_user_id, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import BuyNowIn, CheckoutIn, OrderListOut, OrderView
from storefront.services.checkout_service import CheckoutService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


def get_checkout_service(request: Request, db: Session):
    return CheckoutService(
        db=db,
        lock_service=request.app.state.lock_service,
        notification_service=request.app.state.notification_service,
    )


def _dump(model):
    return model.model_dump() if model is not None else None


@router.post("", response_model=OrderView, status_code=201)
def place_order(
    request: Request,
    payload: CheckoutIn | None = None,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    Sklada zamowienie z aktywnego koszyka uzytkownika.
    Wysyla powiadomienie asynchronicznie.
    """
    payload = payload or CheckoutIn()
    svc = get_checkout_service(request, db)
    try:
        return svc.place_order(
            user_id,
            cart_id=payload.cart_id,
            shipping_address=_dump(payload.shipping_address),
            contact_info=_dump(payload.contact_info),
        )
    except StorefrontError as e:
        raise http_error(e)


@router.post("/buy-now", response_model=OrderView, status_code=201)
def buy_now(
    request: Request,
    payload: BuyNowIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_checkout_service(request, db)
    try:
        return svc.buy_now(
            user_id,
            payload.variation_id,
            payload.quantity,
            shipping_address=_dump(payload.shipping_address),
            contact_info=_dump(payload.contact_info),
        )
    except StorefrontError as e:
        raise http_error(e)


@router.get("", response_model=OrderListOut)
def list_my_orders(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    return {"orders": get_service(db).list_orders_for_user(user_id)}


@router.get("/all", response_model=OrderListOut)
def list_all_orders(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    """
    Wszystkie zamowienia, tylko dla admina (sprawdza OrderService).
    """
    try:
        return {"orders": get_service(db).list_all_orders(user_id)}
    except StorefrontError as e:
        raise http_error(e)


@router.get("/admin/{order_id}", response_model=OrderView)
def get_order_for_admin(
    order_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).get_order_for_admin(order_id, user_id)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderView)
def get_order(
    order_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    Pobiera szczegoly wlasnego zamowienia.
    """
    try:
        return get_service(db).get_order(order_id, user_id)
    except StorefrontError as e:
        raise http_error(e)
