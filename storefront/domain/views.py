# storefront/domain/views.py
"""
Budowanie widokow koszyka i zamowienia oraz wspolna logika wyswietlania.
Koszyk i zamowienie rozroznia pole `kind`, nigdy ksztalt obiektu.
"""
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from storefront.data.models.cart import CartModel, CartStatus
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.domain.schemas import (
    ActivitySummary,
    CartItemOut,
    CartView,
    OrderItemOut,
    OrderView,
    PurchaseView,
)

ZERO = Decimal("0.00")


def line_total(price, quantity: int) -> Decimal:
    return (Decimal(price) * quantity).quantize(Decimal("0.01"))


def cart_total(items: Iterable[CartItemModel]) -> Decimal:
    return sum((line_total(i.price, i.quantity) for i in items), ZERO)


def cart_view(
    cart: CartModel,
    items: List[CartItemModel],
    stock_of: Optional[Callable[[int], Optional[int]]] = None,
) -> CartView:
    lines = []
    for i in items:
        in_stock = None
        if stock_of is not None:
            available = stock_of(i.variation_id)
            in_stock = available is not None and available >= i.quantity
        lines.append(
            CartItemOut(
                id=i.id,
                variation_id=i.variation_id,
                quantity=i.quantity,
                price=i.price,
                line_total=line_total(i.price, i.quantity),
                in_stock=in_stock,
            )
        )

    return CartView(
        cart_id=cart.id,
        user_id=cart.user_id,
        status=cart.status,
        items=lines,
        total_amount=cart_total(items),
        total_items=sum(i.quantity for i in items),
        last_activity=cart.last_activity,
    )


def empty_cart_view(user_id: int) -> CartView:
    return CartView(
        cart_id=None,
        user_id=user_id,
        status=CartStatus.ACTIVE,
        items=[],
        total_amount=ZERO,
        total_items=0,
    )


def order_view(order: OrderModel) -> OrderView:
    return OrderView(
        id=order.id,
        user_id=order.user_id,
        cart_id=order.cart_id,
        status=order.status,
        items=[
            OrderItemOut(
                id=i.id,
                variation_id=i.variation_id,
                quantity=i.quantity,
                price=i.price,
                line_total=line_total(i.price, i.quantity),
            )
            for i in order.items
        ],
        total_amount=order.total_amount,
        total_items=sum(i.quantity for i in order.items),
        shipping_address=order.shipping_address,
        contact_info=order.contact_info,
        created_at=order.created_at,
    )


def summarize(entries: List[PurchaseView]) -> ActivitySummary:
    open_items = 0
    open_amount = ZERO
    orders = 0
    spend = ZERO

    for entry in entries:
        if entry.kind == "cart":
            open_items += entry.total_items
            open_amount += entry.total_amount
        elif entry.kind == "order":
            orders += 1
            spend += entry.total_amount
        else:
            raise ValueError(f"Nieznany rodzaj widoku: {entry.kind}")

    return ActivitySummary(
        open_cart_items=open_items,
        open_cart_amount=open_amount,
        orders_count=orders,
        lifetime_spend=spend,
    )
