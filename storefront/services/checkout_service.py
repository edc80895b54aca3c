# storefront/services/checkout_service.py
from datetime import datetime, timezone
from typing import Iterable, Tuple

import redis
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel, CartStatus
from storefront.data.models.order import OrderItemModel, OrderModel, OrderStatus
from storefront.domain.errors import (
    AlreadyConverted,
    CartNotFound,
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidQuantity,
    StoreContention,
    UserNotFound,
    VariationNotFound,
)
from storefront.domain.schemas import OrderView
from storefront.domain.views import cart_total, line_total, order_view
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.transaction import run_in_transaction
from storefront.utils.settings import CHECKOUT_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Zamiana koszyka w zamowienie.

    1. Wczytuje koszyk (EmptyCart / CartNotFound / AlreadyConverted)
    2. Sprawdza stan kazdej pozycji (InsufficientStock, nic nie zmienia)
    3. W jednej transakcji: zdejmuje stan (compare-and-decrement), tworzy
       zamowienie ze snapshotem pozycji, ustawia koszyk na CONVERTED
       i odpina jego pozycje
    4. Przegrany wyscig w kroku 3 -> rollback i jeszcze raz od kroku 2,
       druga porazka -> Conflict
    5. Po commicie wysyla powiadomienie (best-effort)
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        notification_service: NotificationService,
        lock_ttl: int = CHECKOUT_LOCK_TTL_SECONDS,
    ):
        self.db = db
        self.carts = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.orders = OrderRepo(db)
        self.users = UserRepo(db)
        self.lock_service = lock_service
        self.notification_service = notification_service
        self.lock_ttl = lock_ttl

    def place_order(
        self,
        user_id: int,
        cart_id: int | None = None,
        shipping_address: dict | None = None,
        contact_info: dict | None = None,
    ) -> OrderView:
        cart_id = self._load_cart(user_id, cart_id).id

        token = self.lock_service.new_token()
        locked = self._acquire_lock(cart_id, token)

        try:
            order = run_in_transaction(
                self.db,
                lambda: self._convert(cart_id, user_id, shipping_address, contact_info),
                f"Checkout koszyka {cart_id}",
            )
        finally:
            if locked:
                self._release_lock(cart_id, token)

        logger.info(
            f"Zamowienie {order.id} utworzone z koszyka {cart_id}, "
            f"uzytkownik {user_id}, suma {order.total_amount}"
        )
        self.notification_service.send_order_placed(user_id, order.id)
        return order_view(order)

    def buy_now(
        self,
        user_id: int,
        variation_id: int,
        quantity: int,
        shipping_address: dict | None = None,
        contact_info: dict | None = None,
    ) -> OrderView:
        """Zamowienie jednej pozycji bez koszyka, te same reguly stanu co checkout."""
        if quantity <= 0:
            raise InvalidQuantity("Ilosc musi byc wieksza niz 0", quantity=quantity)
        if not self.users.get_user(user_id):
            raise UserNotFound(f"Uzytkownik {user_id} nie istnieje")

        def work() -> OrderModel:
            variation = self._check_stock([(variation_id, quantity)])[0]
            price = variation.effective_price
            self._decrement([(variation_id, quantity)])

            return self.orders.add_order(
                OrderModel(
                    user_id=user_id,
                    cart_id=None,
                    status=OrderStatus.PLACED,
                    total_amount=line_total(price, quantity),
                    shipping_address=shipping_address,
                    contact_info=contact_info,
                    items=[
                        OrderItemModel(variation_id=variation_id, quantity=quantity, price=price)
                    ],
                )
            )

        order = run_in_transaction(self.db, work, f"Buy-now wariantu {variation_id}")
        logger.info(f"Zamowienie {order.id} (buy-now) dla uzytkownika {user_id}")
        self.notification_service.send_order_placed(user_id, order.id)
        return order_view(order)

    def _load_cart(self, user_id: int, cart_id: int | None) -> CartModel:
        if cart_id is None:
            cart = self.carts.get_active_cart_by_user(user_id)
            if not cart:
                raise EmptyCart("Brak aktywnego koszyka")
            return cart

        cart = self.carts.get_cart(cart_id)
        if not cart or cart.user_id != user_id:
            raise CartNotFound(f"Koszyk {cart_id} nie istnieje", cart_id=cart_id)
        self._ensure_convertible(cart)
        return cart

    def _acquire_lock(self, cart_id: int, token: str) -> bool:
        """
        True - mamy lock, False - Redis niedostepny, checkout idzie bez locka
        (o poprawnosci i tak decyduje CAS w bazie). Zajety lock -> Conflict.
        """
        try:
            acquired = self.lock_service.acquire_checkout_lock(cart_id, token, self.lock_ttl)
        except redis.RedisError as e:
            logger.warning(f"Lock checkoutu koszyka {cart_id} niedostepny, kontynuuje bez niego: {e}")
            return False
        if not acquired:
            raise Conflict(f"Checkout koszyka {cart_id} juz trwa", cart_id=cart_id)
        return True

    def _release_lock(self, cart_id: int, token: str) -> None:
        # best-effort, lock i tak wygasnie po TTL
        try:
            self.lock_service.release_checkout_lock(cart_id, token)
        except redis.RedisError as e:
            logger.warning(f"Nie udalo sie zwolnic locka koszyka {cart_id}: {e}")

    @staticmethod
    def _ensure_convertible(cart: CartModel) -> None:
        if cart.status == CartStatus.CONVERTED:
            raise AlreadyConverted(f"Koszyk {cart.id} zostal juz zamieniony w zamowienie", cart_id=cart.id)
        if cart.status != CartStatus.ACTIVE:
            raise CartNotFound(f"Koszyk {cart.id} nie jest aktywny", cart_id=cart.id)

    def _convert(
        self,
        cart_id: int,
        user_id: int,
        shipping_address: dict | None,
        contact_info: dict | None,
    ) -> OrderModel:
        # swiezy odczyt w kazdej probie
        cart = self.carts.get_cart(cart_id)
        if not cart:
            raise CartNotFound(f"Koszyk {cart_id} nie istnieje", cart_id=cart_id)
        self._ensure_convertible(cart)

        items = self.carts.get_cart_items(cart.id)
        if not items:
            raise EmptyCart(f"Koszyk {cart.id} jest pusty", cart_id=cart.id)

        lines = [(i.variation_id, i.quantity) for i in items]
        self._check_stock(lines)
        self._decrement(lines)

        total = cart_total(items)
        order = self.orders.add_order(
            OrderModel(
                user_id=user_id,
                cart_id=cart.id,
                status=OrderStatus.PLACED,
                total_amount=total,
                shipping_address=shipping_address,
                contact_info=contact_info,
                items=[
                    OrderItemModel(variation_id=i.variation_id, quantity=i.quantity, price=i.price)
                    for i in items
                ],
            )
        )

        rowcount = self.carts.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "status": CartStatus.CONVERTED,
                "version": cart.version + 1,
                "total_amount": 0,
                "last_activity": datetime.now(timezone.utc),
            },
        )
        if rowcount == 0:
            raise StoreContention(f"Koszyk {cart.id} zmieniony w trakcie checkoutu")

        self.carts.delete_cart_items(cart.id)
        return order

    def _check_stock(self, lines: Iterable[Tuple[int, int]]) -> list:
        variations = []
        for variation_id, quantity in lines:
            variation = self.catalog.get_variation(variation_id)
            if not variation:
                raise VariationNotFound(f"Wariant {variation_id} nie istnieje", variation_id=variation_id)
            if variation.stock < quantity:
                raise InsufficientStock(variation_id, quantity, variation.stock)
            variations.append(variation)
        return variations

    def _decrement(self, lines: Iterable[Tuple[int, int]]) -> None:
        # stala kolejnosc wierszy, zeby dwa checkouty nie zakleszczyly sie w bazie
        for variation_id, quantity in sorted(lines):
            if not self.catalog.check_and_decrement(variation_id, quantity):
                logger.warning(f"Wariant {variation_id}: stan zmienil sie po sprawdzeniu")
                raise StoreContention(f"Wariant {variation_id}: przegrany wyscig o stan")
