# storefront/repos/cart_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel, CartStatus
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_active_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id, CartModel.status == CartStatus.ACTIVE)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        """
        Tylko flush, commit robi wolajacy razem z reszta operacji.
        IntegrityError = unikalny indeks (jeden ACTIVE na usera) odrzucil insert,
        rownolegle zadanie utworzylo koszyk pierwsze.
        """
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, variation_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.variation_id == variation_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_cart_item_by_id(self, cart_id: int, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> None:
        self.db.add(item)
        self.db.flush()

    def delete_cart_item(self, cart_id: int, item_id: int) -> int:
        item = self.get_cart_item_by_id(cart_id, item_id)
        if not item:
            return 0
        self.db.delete(item)
        self.db.flush()
        return 1

    def delete_cart_items(self, cart_id: int) -> int:
        items = self.get_cart_items(cart_id)
        for item in items:
            self.db.delete(item)
        self.db.flush()
        return len(items)

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        """
        Compare-and-set na polu version (i statusie ACTIVE).
        0 zmienionych wierszy = ktos inny zmodyfikowal koszyk.
        """
        res = self.db.execute(
            update(CartModel)
            .where(
                CartModel.id == cart_id,
                CartModel.version == old_version,
                CartModel.status == CartStatus.ACTIVE,
            )
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def find_idle_active_carts(self, cutoff: datetime) -> List[CartModel]:
        return list(
            self.db.execute(
                select(CartModel)
                .where(
                    CartModel.status == CartStatus.ACTIVE,
                    CartModel.last_activity < cutoff,
                )
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
