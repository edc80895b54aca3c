# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Annotated, List, Literal, Union
from decimal import Decimal
from datetime import datetime


class ItemIn(BaseModel):
    """Schema dla dodawania wariantu do koszyka."""

    variation_id: int = Field(..., gt=0, description="ID wariantu produktu (musi byc > 0)")
    # zakres ilosci sprawdza serwis (InvalidQuantity)
    quantity: int = Field(..., description="Ilosc sztuk")


class ItemUpdateIn(BaseModel):
    """Schema dla zmiany ilosci, 0 usuwa pozycje."""

    quantity: int = Field(..., description="Nowa ilosc (0 = usun)")


class AddressIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address1: str = Field(..., min_length=1)
    address2: str | None = None
    city: str = Field(..., min_length=1)
    state: str
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2)


class ContactIn(BaseModel):
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=3)


class CheckoutIn(BaseModel):
    """Schema dla zlozenia zamowienia z aktywnego koszyka."""

    cart_id: int | None = Field(None, gt=0, description="ID koszyka widzianego przez klienta")
    shipping_address: AddressIn | None = None
    contact_info: ContactIn | None = None


class BuyNowIn(BaseModel):
    """Schema dla zamowienia jednej pozycji z pominieciem koszyka."""

    variation_id: int = Field(..., gt=0)
    quantity: int
    shipping_address: AddressIn | None = None
    contact_info: ContactIn | None = None


class CartItemOut(BaseModel):
    """Schema dla pozycji koszyka (response)."""

    id: int
    variation_id: int
    quantity: int
    price: Decimal
    line_total: Decimal
    # miekki check, nic nie rezerwuje
    in_stock: bool | None = None


class CartView(BaseModel):
    """Schema dla koszyka (response)."""

    kind: Literal["cart"] = "cart"
    cart_id: int | None
    user_id: int
    status: str
    items: List[CartItemOut]
    total_amount: Decimal
    total_items: int
    last_activity: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(BaseModel):
    id: int
    variation_id: int
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderView(BaseModel):
    """Schema dla zamowienia (response)."""

    kind: Literal["order"] = "order"
    id: int
    user_id: int
    cart_id: int | None
    status: str
    items: List[OrderItemOut]
    total_amount: Decimal
    total_items: int
    shipping_address: dict | None = None
    contact_info: dict | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


PurchaseView = Annotated[Union[CartView, OrderView], Field(discriminator="kind")]


class OrderListOut(BaseModel):
    orders: List[OrderView]


class ActivitySummary(BaseModel):
    open_cart_items: int
    open_cart_amount: Decimal
    orders_count: int
    lifetime_spend: Decimal


class ActivityOut(BaseModel):
    entries: List[PurchaseView]
    summary: ActivitySummary


class UserCreate(BaseModel):
    """Schema dla tworzenia uzytkownika."""

    id: int = Field(..., gt=0, description="ID uzytkownika (musi byc > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imie uzytkownika")
    is_admin: bool = False


class UserRead(BaseModel):
    """Schema dla uzytkownika (response)."""

    id: int
    name: str
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)
