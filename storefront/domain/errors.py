# storefront/domain/errors.py
from typing import Any, Dict


class StorefrontError(Exception):
    """
    Bazowy blad domeny koszyk/zamowienie.
    status_code to podpowiedz dla warstwy HTTP, serwisy jej nie uzywaja.
    """

    status_code = 400
    kind = "StorefrontError"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.extra}


class InvalidInput(StorefrontError):
    status_code = 400
    kind = "InvalidInput"


class InvalidQuantity(InvalidInput):
    kind = "InvalidQuantity"


class NotFound(StorefrontError):
    status_code = 404
    kind = "NotFound"


class CartNotFound(NotFound):
    kind = "CartNotFound"


class CartItemNotFound(NotFound):
    kind = "ItemNotFound"


class VariationNotFound(NotFound):
    kind = "VariationNotFound"


class OrderNotFound(NotFound):
    kind = "OrderNotFound"


class UserNotFound(NotFound):
    kind = "UserNotFound"


class EmptyCart(StorefrontError):
    status_code = 400
    kind = "EmptyCart"


class InsufficientStock(StorefrontError):
    status_code = 422
    kind = "InsufficientStock"

    def __init__(self, variation_id: int, requested: int, available: int):
        super().__init__(
            f"Niewystarczajacy stan dla wariantu {variation_id}: "
            f"zadano {requested}, dostepne {available}",
            variation_id=variation_id,
            requested=requested,
            available=available,
        )
        self.variation_id = variation_id
        self.requested = requested
        self.available = available


class AlreadyConverted(StorefrontError):
    status_code = 409
    kind = "AlreadyConverted"


class Conflict(StorefrontError):
    status_code = 409
    kind = "Conflict"


class Unauthorized(StorefrontError):
    status_code = 403
    kind = "Unauthorized"


class StoreContention(Exception):
    """Wewnetrzny sygnal: przegrany wyscig o wiersz w bazie, operacja ponawiana raz."""
