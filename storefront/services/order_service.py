# storefront/services/order_service.py
from typing import List

from sqlalchemy.orm import Session

from storefront.domain.errors import OrderNotFound, Unauthorized
from storefront.domain.schemas import ActivityOut, OrderView
from storefront.domain.views import cart_view, order_view, summarize
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Serwis zapytan o zamowienia (tylko odczyt).
    Zamowienia tworzy CheckoutService.

    Dostep admina sprawdza wylacznie _require_admin, wolany jako pierwszy
    krok kazdej metody *_for_admin / list_all_orders, przed odczytem danych.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.carts = CartRepo(db)
        self.catalog = CatalogRepo(db)

    def list_orders_for_user(self, user_id: int) -> List[OrderView]:
        return [order_view(o) for o in self.repo.list_by_user(user_id)]

    def list_all_orders(self, caller_id: int) -> List[OrderView]:
        self._require_admin(caller_id)
        orders = self.repo.list_all()
        logger.info(f"Admin {caller_id} pobral liste {len(orders)} zamowien")
        return [order_view(o) for o in orders]

    def get_order(self, order_id: int, user_id: int) -> OrderView:
        """
        Use Case: Pobranie zamowienia przez wlasciciela.
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFound(f"Zamowienie {order_id} nie istnieje", order_id=order_id)

        if order.user_id != user_id:
            raise Unauthorized("Brak dostepu do zamowienia", order_id=order_id)

        return order_view(order)

    def get_order_for_admin(self, order_id: int, caller_id: int) -> OrderView:
        self._require_admin(caller_id)
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(f"Zamowienie {order_id} nie istnieje", order_id=order_id)
        return order_view(order)

    def purchase_activity(self, user_id: int) -> ActivityOut:
        """Aktywny koszyk (jesli jest) i zamowienia, najnowsze pierwsze."""
        entries = []
        cart = self.carts.get_active_cart_by_user(user_id)
        if cart:
            entries.append(cart_view(cart, self.carts.get_cart_items(cart.id), self.catalog.get_stock))
        entries.extend(self.list_orders_for_user(user_id))
        return ActivityOut(entries=entries, summary=summarize(entries))

    def _require_admin(self, caller_id: int) -> None:
        user = self.users.get_user(caller_id)
        if not user or not user.is_admin:
            logger.warning(f"Odmowa dostepu admina dla uzytkownika {caller_id}")
            raise Unauthorized("Wymagane uprawnienia administratora")
