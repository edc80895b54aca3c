import threading
from decimal import Decimal

import pytest
import redis
from sqlalchemy import func, select

from storefront.data.models import CartStatus, OrderModel
from storefront.domain.errors import (
    AlreadyConverted,
    CartNotFound,
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidQuantity,
    VariationNotFound,
)
from storefront.repos.cart_repo import CartRepo

from tests.conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID


def _orders_count(db):
    return db.execute(select(func.count(OrderModel.id))).scalar_one()


class TestPlaceOrder:
    def test_converts_cart_and_decrements_stock(
        self, cart_service, checkout_service, make_variation, stock_of, db, notifier
    ):
        variation_id = make_variation(stock=5, price="10.00")
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 3)

        order = checkout_service.place_order(CUSTOMER_ID)

        assert order.kind == "order"
        assert order.total_amount == Decimal("30.00")
        assert order.cart_id == cart.cart_id
        assert order.status == "PLACED"
        assert [(i.variation_id, i.quantity, i.price) for i in order.items] == [
            (variation_id, 3, Decimal("10.00"))
        ]
        assert stock_of(variation_id) == 2

        converted = CartRepo(db).get_cart(cart.cart_id)
        assert converted.status == CartStatus.CONVERTED
        assert CartRepo(db).get_cart_items(cart.cart_id) == []
        assert notifier.sent == [(CUSTOMER_ID, order.id)]

    def test_multiple_lines(self, cart_service, checkout_service, make_variation, stock_of):
        a = make_variation(stock=10, price="1.50")
        b = make_variation(stock=1, price="100.00")
        cart_service.add_item(CUSTOMER_ID, a, 4)
        cart_service.add_item(CUSTOMER_ID, b, 1)

        order = checkout_service.place_order(CUSTOMER_ID, shipping_address={"city": "Gdansk"})

        assert order.total_amount == Decimal("106.00")
        assert order.total_items == 5
        assert order.shipping_address == {"city": "Gdansk"}
        assert stock_of(a) == 6
        assert stock_of(b) == 0

    def test_insufficient_stock_changes_nothing(
        self, cart_service, checkout_service, make_variation, stock_of, db
    ):
        variation_id = make_variation(stock=2)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 3)

        with pytest.raises(InsufficientStock) as exc:
            checkout_service.place_order(CUSTOMER_ID)

        assert exc.value.requested == 3
        assert exc.value.available == 2
        assert exc.value.variation_id == variation_id
        assert stock_of(variation_id) == 2
        assert CartRepo(db).get_cart(cart.cart_id).status == CartStatus.ACTIVE
        assert _orders_count(db) == 0

    def test_one_short_line_aborts_whole_order(
        self, cart_service, checkout_service, make_variation, stock_of, db
    ):
        plenty = make_variation(stock=50)
        scarce = make_variation(stock=1)
        cart_service.add_item(CUSTOMER_ID, plenty, 5)
        cart_service.add_item(CUSTOMER_ID, scarce, 2)

        with pytest.raises(InsufficientStock):
            checkout_service.place_order(CUSTOMER_ID)

        assert stock_of(plenty) == 50
        assert stock_of(scarce) == 1
        assert _orders_count(db) == 0

    def test_missing_cart(self, checkout_service, db):
        with pytest.raises(EmptyCart):
            checkout_service.place_order(CUSTOMER_ID)
        assert _orders_count(db) == 0

    def test_empty_cart(self, cart_service, checkout_service, make_variation, stock_of):
        variation_id = make_variation(stock=5)
        item_id = cart_service.add_item(CUSTOMER_ID, variation_id, 1).items[0].id
        cart_service.remove_item(CUSTOMER_ID, item_id)

        with pytest.raises(EmptyCart):
            checkout_service.place_order(CUSTOMER_ID)
        assert stock_of(variation_id) == 5

    def test_unknown_cart_id(self, checkout_service):
        with pytest.raises(CartNotFound):
            checkout_service.place_order(CUSTOMER_ID, cart_id=777)

    def test_cart_of_another_user(self, cart_service, checkout_service, make_variation):
        cart = cart_service.add_item(CUSTOMER_ID, make_variation(), 1)

        with pytest.raises(CartNotFound):
            checkout_service.place_order(OTHER_CUSTOMER_ID, cart_id=cart.cart_id)

    def test_variation_removed_from_catalog(
        self, cart_service, checkout_service, make_variation, db
    ):
        from storefront.data.models import ProductVariationModel

        variation_id = make_variation()
        cart_service.add_item(CUSTOMER_ID, variation_id, 1)
        db.delete(db.get(ProductVariationModel, variation_id))
        db.commit()

        with pytest.raises(VariationNotFound):
            checkout_service.place_order(CUSTOMER_ID)


class TestConvertOnce:
    def test_second_submission_is_already_converted(
        self, cart_service, checkout_service, make_variation, stock_of, db
    ):
        variation_id = make_variation(stock=5)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 2)
        checkout_service.place_order(CUSTOMER_ID, cart_id=cart.cart_id)

        with pytest.raises(AlreadyConverted):
            checkout_service.place_order(CUSTOMER_ID, cart_id=cart.cart_id)

        assert stock_of(variation_id) == 3
        assert _orders_count(db) == 1

    def test_without_cart_id_next_call_sees_no_active_cart(
        self, cart_service, checkout_service, make_variation
    ):
        cart_service.add_item(CUSTOMER_ID, make_variation(stock=5), 2)
        checkout_service.place_order(CUSTOMER_ID)

        with pytest.raises(EmptyCart):
            checkout_service.place_order(CUSTOMER_ID)

    def test_new_cart_after_conversion(self, cart_service, checkout_service, make_variation):
        variation_id = make_variation(stock=5)
        first = cart_service.add_item(CUSTOMER_ID, variation_id, 1)
        checkout_service.place_order(CUSTOMER_ID)

        second = cart_service.add_item(CUSTOMER_ID, variation_id, 1)

        assert second.cart_id != first.cart_id
        assert second.items[0].quantity == 1

    def test_checkout_in_progress_is_conflict(
        self, cart_service, checkout_service, lock_service, make_variation, stock_of
    ):
        variation_id = make_variation(stock=5)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 1)
        assert lock_service.acquire_checkout_lock(cart.cart_id, "other-request", 30)

        with pytest.raises(Conflict):
            checkout_service.place_order(CUSTOMER_ID)

        assert stock_of(variation_id) == 5

    def test_lock_is_released_after_failure(
        self, cart_service, checkout_service, lock_service, make_variation
    ):
        cart = cart_service.add_item(CUSTOMER_ID, make_variation(stock=0), 1)

        with pytest.raises(InsufficientStock):
            checkout_service.place_order(CUSTOMER_ID)

        assert lock_service.acquire_checkout_lock(cart.cart_id, "next", 30)

    def test_release_failure_does_not_hide_placed_order(
        self, cart_service, checkout_service, lock_service, make_variation, stock_of, db, notifier,
        monkeypatch,
    ):
        variation_id = make_variation(stock=5)
        cart_service.add_item(CUSTOMER_ID, variation_id, 2)

        def redis_down(*args, **kwargs):
            raise redis.ConnectionError("redis down")

        monkeypatch.setattr(lock_service.redis, "eval", redis_down)

        order = checkout_service.place_order(CUSTOMER_ID)

        assert order.total_items == 2
        assert _orders_count(db) == 1
        assert stock_of(variation_id) == 3
        assert notifier.sent == [(CUSTOMER_ID, order.id)]

    def test_checkout_works_without_redis(
        self, cart_service, checkout_service, lock_service, make_variation, stock_of, db,
        monkeypatch,
    ):
        variation_id = make_variation(stock=5)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 2)
        released = []

        def redis_down(*args, **kwargs):
            raise redis.ConnectionError("redis down")

        monkeypatch.setattr(lock_service.redis, "set", redis_down)
        monkeypatch.setattr(
            lock_service, "release_checkout_lock", lambda *args: released.append(args)
        )

        order = checkout_service.place_order(CUSTOMER_ID)

        assert order.cart_id == cart.cart_id
        assert stock_of(variation_id) == 3
        assert released == []

        # bez locka o jednokrotnej konwersji decyduje stan koszyka w bazie
        with pytest.raises(AlreadyConverted):
            checkout_service.place_order(CUSTOMER_ID, cart_id=cart.cart_id)
        assert _orders_count(db) == 1


class TestOversell:
    def test_sequential_carts_sharing_variation(
        self, cart_service, checkout_service, make_variation, stock_of
    ):
        variation_id = make_variation(stock=5)
        cart_service.add_item(CUSTOMER_ID, variation_id, 3)
        cart_service.add_item(OTHER_CUSTOMER_ID, variation_id, 3)

        checkout_service.place_order(CUSTOMER_ID)
        with pytest.raises(InsufficientStock) as exc:
            checkout_service.place_order(OTHER_CUSTOMER_ID)

        assert exc.value.available == 2
        assert stock_of(variation_id) == 2

    def test_lost_race_is_retried_once(
        self, cart_service, checkout_service, make_variation, stock_of, monkeypatch
    ):
        variation_id = make_variation(stock=5)
        cart_service.add_item(CUSTOMER_ID, variation_id, 3)
        real = checkout_service.catalog.check_and_decrement
        calls = []

        def flaky(vid, amount):
            calls.append(vid)
            if len(calls) == 1:
                return False
            return real(vid, amount)

        monkeypatch.setattr(checkout_service.catalog, "check_and_decrement", flaky)

        order = checkout_service.place_order(CUSTOMER_ID)

        assert len(calls) == 2
        assert order.total_items == 3
        assert stock_of(variation_id) == 2

    def test_second_lost_race_is_conflict(
        self, cart_service, checkout_service, make_variation, stock_of, db, monkeypatch
    ):
        variation_id = make_variation(stock=5)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 3)
        monkeypatch.setattr(
            checkout_service.catalog, "check_and_decrement", lambda vid, amount: False
        )

        with pytest.raises(Conflict):
            checkout_service.place_order(CUSTOMER_ID)

        assert stock_of(variation_id) == 5
        assert CartRepo(db).get_cart(cart.cart_id).status == CartStatus.ACTIVE
        assert _orders_count(db) == 0

    def test_partial_decrement_is_rolled_back(
        self, cart_service, checkout_service, make_variation, stock_of, db, monkeypatch
    ):
        a = make_variation(stock=5)
        b = make_variation(stock=5)
        cart_service.add_item(CUSTOMER_ID, a, 1)
        cart_service.add_item(CUSTOMER_ID, b, 1)
        real = checkout_service.catalog.check_and_decrement

        def fail_second_line(vid, amount):
            if vid == b:
                return False
            return real(vid, amount)

        monkeypatch.setattr(checkout_service.catalog, "check_and_decrement", fail_second_line)

        with pytest.raises(Conflict):
            checkout_service.place_order(CUSTOMER_ID)

        assert stock_of(a) == 5
        assert stock_of(b) == 5
        assert _orders_count(db) == 0

    def test_check_and_decrement_never_goes_negative(self, checkout_service, make_variation, stock_of):
        variation_id = make_variation(stock=2)

        assert checkout_service.catalog.check_and_decrement(variation_id, 3) is False
        assert checkout_service.catalog.check_and_decrement(variation_id, 2) is True
        assert checkout_service.catalog.check_and_decrement(variation_id, 1) is False
        assert stock_of(variation_id) == 0


class TestConcurrentPurchase:
    """Rownolegli klienci kupuja w osobnych polaczeniach do jednej bazy."""

    @pytest.fixture()
    def file_engine(self, tmp_path):
        from storefront.data.database import create_db_engine, init_db

        engine = create_db_engine(f"sqlite:///{tmp_path / 'store.db'}")
        init_db(engine)
        yield engine
        engine.dispose()

    def test_race_loser_gets_insufficient_stock(self, file_engine, lock_service, notifier, monkeypatch):
        from storefront.data.database import create_session_factory
        from storefront.data.models import ProductVariationModel, UserModel
        from storefront.services.cart_service import CartService
        from storefront.services.checkout_service import CheckoutService

        sessions = create_session_factory(file_engine)
        db = sessions()
        db.add(UserModel(id=CUSTOMER_ID, name="Ala"))
        db.add(ProductVariationModel(id=1, product_id=1, price=Decimal("10.00"), stock=5))
        db.commit()

        CartService(db).add_item(CUSTOMER_ID, 1, 3)
        checkout = CheckoutService(db, lock_service=lock_service, notification_service=notifier)
        real = checkout.catalog.check_and_decrement
        raced = []

        def other_buyer_first(vid, amount):
            if not raced:
                raced.append(vid)
                other = sessions()
                other.execute(
                    ProductVariationModel.__table__.update()
                    .where(ProductVariationModel.id == vid)
                    .values(stock=ProductVariationModel.stock - 3)
                )
                other.commit()
                other.close()
            return real(vid, amount)

        monkeypatch.setattr(checkout.catalog, "check_and_decrement", other_buyer_first)

        with pytest.raises(InsufficientStock) as exc:
            checkout.place_order(CUSTOMER_ID)

        assert exc.value.available == 2
        assert checkout.catalog.get_stock(1) == 2
        db.close()

    def test_parallel_checkouts_never_oversell(self, file_engine, lock_service, notifier):
        from storefront.data.database import create_session_factory
        from storefront.data.models import ProductVariationModel, UserModel
        from storefront.services.cart_service import CartService
        from storefront.services.checkout_service import CheckoutService

        buyers, initial, quantity = 8, 5, 2
        sessions = create_session_factory(file_engine)
        setup = sessions()
        setup.add(ProductVariationModel(id=1, product_id=1, price=Decimal("10.00"), stock=initial))
        for user_id in range(1, buyers + 1):
            setup.add(UserModel(id=user_id, name=f"Klient {user_id}"))
        setup.commit()
        for user_id in range(1, buyers + 1):
            CartService(setup).add_item(user_id, 1, quantity)
        setup.close()

        start = threading.Barrier(buyers)
        results = []

        def buy(user_id):
            db = sessions()
            checkout = CheckoutService(db, lock_service=lock_service, notification_service=notifier)
            start.wait()
            try:
                checkout.place_order(user_id)
                results.append("ok")
            except (InsufficientStock, Conflict) as e:
                results.append(type(e).__name__)
            finally:
                db.close()

        threads = [threading.Thread(target=buy, args=(u,)) for u in range(1, buyers + 1)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        check = sessions()
        stock = check.get(ProductVariationModel, 1).stock
        check.close()

        assert len(results) == buyers
        assert stock >= 0
        assert results.count("ok") * quantity + stock == initial
        assert results.count("ok") <= initial // quantity


class TestBuyNow:
    def test_creates_single_line_order(self, checkout_service, make_variation, stock_of, notifier):
        variation_id = make_variation(stock=4, price="50.00", sale_price="40.00")

        order = checkout_service.buy_now(CUSTOMER_ID, variation_id, 2)

        assert order.cart_id is None
        assert order.total_amount == Decimal("80.00")
        assert order.items[0].price == Decimal("40.00")
        assert stock_of(variation_id) == 2
        assert notifier.sent == [(CUSTOMER_ID, order.id)]

    def test_insufficient_stock(self, checkout_service, make_variation, stock_of):
        variation_id = make_variation(stock=1)

        with pytest.raises(InsufficientStock):
            checkout_service.buy_now(CUSTOMER_ID, variation_id, 2)
        assert stock_of(variation_id) == 1

    def test_invalid_quantity(self, checkout_service, make_variation):
        with pytest.raises(InvalidQuantity):
            checkout_service.buy_now(CUSTOMER_ID, make_variation(), 0)

    def test_does_not_touch_cart(self, cart_service, checkout_service, make_variation):
        variation_id = make_variation(stock=10)
        cart = cart_service.add_item(CUSTOMER_ID, variation_id, 1)

        checkout_service.buy_now(CUSTOMER_ID, variation_id, 1)

        view = cart_service.get_cart(CUSTOMER_ID)
        assert view.cart_id == cart.cart_id
        assert view.status == CartStatus.ACTIVE
        assert view.items[0].quantity == 1
