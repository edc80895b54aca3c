from datetime import datetime, timezone, timedelta
from typing import List

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel, CartStatus
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    CartItemNotFound,
    InvalidQuantity,
    StoreContention,
    UserNotFound,
    VariationNotFound,
)
from storefront.domain.schemas import CartView
from storefront.domain.views import cart_total, cart_view, empty_cart_view
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.transaction import run_in_transaction
from storefront.utils.settings import CART_IDLE_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CartService:
    """
    Prosta implementacja cqrs i use case dla domeny cart
    commands (add, update, remove, clear) modyfikuja stan aktywnego koszyka
    query (get) tylko odczyt

    Stan magazynu sprawdzamy tu tylko miekko (flaga in_stock w odpowiedzi),
    nic nie rezerwujemy. Wiazace sprawdzenie jest dopiero przy checkout.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.users = UserRepo(db)

    #query - odczyt
    def get_cart(self, user_id: int) -> CartView:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return empty_cart_view(user_id)
        return self._view(cart)

    #commands
    def get_or_create_active_cart(self, user_id: int) -> CartModel:
        existing = self.repo.get_active_cart_by_user(user_id)
        if existing:
            return existing

        if not self.users.get_user(user_id):
            raise UserNotFound(f"Uzytkownik {user_id} nie istnieje")

        # rownolegle utworzenie -> IntegrityError, run_in_transaction robi rollback
        # i powtarza, druga proba juz znajduje istniejacy koszyk
        now = _now()
        created = self.repo.create_cart(
            CartModel(
                user_id=user_id,
                status=CartStatus.ACTIVE,
                version=1,
                total_amount=0,
                created_at=now,
                last_activity=now,
            )
        )
        logger.info(f"Utworzono nowy koszyk {created.id} dla uzytkownika {user_id}")
        return created

    def add_item(self, user_id: int, variation_id: int, quantity: int) -> CartView:
        if quantity <= 0:
            raise InvalidQuantity("Ilosc musi byc wieksza niz 0", quantity=quantity)

        def work() -> CartModel:
            variation = self.catalog.get_variation(variation_id)
            if not variation:
                raise VariationNotFound(
                    f"Wariant {variation_id} nie istnieje", variation_id=variation_id
                )

            cart = self.get_or_create_active_cart(user_id)
            price = variation.effective_price

            # jeden wiersz na wariant, kolejne dodania sumuja ilosc
            existing_item = self.repo.get_cart_item(cart.id, variation_id)
            if existing_item:
                new_quantity = existing_item.quantity + quantity
                logger.info(
                    f"Wariant {variation_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                    f"z {existing_item.quantity} do {new_quantity}"
                )
                existing_item.quantity = new_quantity
                existing_item.price = price
                self.repo.add_cart_item(existing_item)
            else:
                new_quantity = quantity
                logger.info(f"Dodaje wariant {variation_id} do koszyka {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        variation_id=variation_id,
                        quantity=quantity,
                        price=price,
                    )
                )

            if variation.stock < new_quantity:
                logger.warning(
                    f"Koszyk {cart.id}: wariant {variation_id} ma {variation.stock} szt., "
                    f"w koszyku {new_quantity}"
                )

            self._bump_version(cart)
            return cart

        cart = run_in_transaction(self.db, work, f"Dodanie do koszyka uzytkownika {user_id}")
        return self._view(cart)

    def update_item(self, user_id: int, cart_item_id: int, quantity: int) -> CartView:
        if quantity < 0:
            raise InvalidQuantity("Ilosc nie moze byc ujemna", quantity=quantity)

        def work() -> CartModel:
            cart = self.repo.get_active_cart_by_user(user_id)
            item = self.repo.get_cart_item_by_id(cart.id, cart_item_id) if cart else None
            if not item:
                raise CartItemNotFound(
                    f"Pozycja {cart_item_id} nie nalezy do koszyka uzytkownika",
                    cart_item_id=cart_item_id,
                )

            if quantity == 0:
                logger.info(f"Ilosc 0 - usuwam pozycje {cart_item_id} z koszyka {cart.id}")
                self.repo.delete_cart_item(cart.id, cart_item_id)
            else:
                item.quantity = quantity
                self.repo.add_cart_item(item)

            self._bump_version(cart)
            return cart

        cart = run_in_transaction(self.db, work, f"Zmiana pozycji {cart_item_id}")
        return self._view(cart)

    def remove_item(self, user_id: int, cart_item_id: int) -> CartView:
        def work() -> CartModel | None:
            cart = self.repo.get_active_cart_by_user(user_id)
            if not cart:
                return None
            if self.repo.delete_cart_item(cart.id, cart_item_id) == 0:
                # brak pozycji to nie blad
                return cart
            logger.info(f"Usunieto pozycje {cart_item_id} z koszyka {cart.id}")
            self._bump_version(cart)
            return cart

        cart = run_in_transaction(self.db, work, f"Usuniecie pozycji {cart_item_id}")
        return self._view(cart) if cart else empty_cart_view(user_id)

    def clear(self, user_id: int) -> CartView:
        def work() -> CartModel | None:
            cart = self.repo.get_active_cart_by_user(user_id)
            if not cart:
                return None
            removed = self.repo.delete_cart_items(cart.id)
            if removed:
                logger.info(f"Wyczyszczono koszyk {cart.id} ({removed} pozycji)")
                self._bump_version(cart)
            return cart

        cart = run_in_transaction(self.db, work, f"Czyszczenie koszyka uzytkownika {user_id}")
        return self._view(cart) if cart else empty_cart_view(user_id)

    def abandon_idle_carts(self, now: datetime | None = None) -> List[int]:
        """
        Housekeeping: ACTIVE koszyki bez aktywnosci dluzej niz CART_IDLE_SECONDS
        przechodza w ABANDONED. Koszyk zmieniony w miedzyczasie (inna wersja) pomijamy.
        """
        cutoff = (now or _now()) - timedelta(seconds=CART_IDLE_SECONDS)
        carts = self.repo.find_idle_active_carts(cutoff)
        logger.info(f"Znaleziono {len(carts)} koszykow do porzucenia")

        abandoned = []
        for cart in carts:
            rowcount = self.repo.update_cart_version(
                cart_id=cart.id,
                old_version=cart.version,
                new_data={"status": CartStatus.ABANDONED, "version": cart.version + 1},
            )
            if rowcount:
                abandoned.append(cart.id)
            else:
                logger.info(f"Koszyk {cart.id} zmieniony w trakcie, pomijam")
        self.repo.commit()

        logger.info(f"Porzucono koszyki: {abandoned}")
        return abandoned

    def _bump_version(self, cart: CartModel) -> None:
        # Optimistic locking + przeliczenie i zapis sumy koszyka
        items = self.repo.get_cart_items(cart.id)
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "total_amount": cart_total(items),
                "last_activity": _now(),
            },
        )
        # np w bazie update set version 2 where id 1 and version 1
        if rowcount == 0:
            raise StoreContention(f"Koszyk {cart.id} zostal zmodyfikowany przez inna operacje")

    def _view(self, cart: CartModel) -> CartView:
        fresh = self.repo.get_cart(cart.id)
        return cart_view(fresh, self.repo.get_cart_items(cart.id), self.catalog.get_stock)
