from decimal import Decimal

import fakeredis
import pytest
from sqlalchemy import select

from storefront.data.database import create_db_engine, create_session_factory, init_db
from storefront.data.models import ProductVariationModel, UserModel
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService

CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2
ADMIN_ID = 99


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_placed(self, user_id, order_id):
        self.sent.append((user_id, order_id))


@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture()
def users(db):
    db.add_all(
        [
            UserModel(id=CUSTOMER_ID, name="Ala"),
            UserModel(id=OTHER_CUSTOMER_ID, name="Olek"),
            UserModel(id=ADMIN_ID, name="Admin", is_admin=True),
        ]
    )
    db.commit()


@pytest.fixture()
def make_variation(db):
    counter = {"n": 0}

    def _make(stock=5, price="10.00", sale_price=None):
        counter["n"] += 1
        variation = ProductVariationModel(
            product_id=1,
            sku=f"SKU-{counter['n']}",
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            stock=stock,
        )
        db.add(variation)
        db.commit()
        return variation.id

    return _make


@pytest.fixture()
def stock_of(db):
    def _stock(variation_id):
        return db.execute(
            select(ProductVariationModel.stock).where(ProductVariationModel.id == variation_id)
        ).scalar_one()

    return _stock


@pytest.fixture()
def lock_service():
    return LockService(client=fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def cart_service(db, users):
    return CartService(db)


@pytest.fixture()
def checkout_service(db, users, lock_service, notifier):
    return CheckoutService(db, lock_service=lock_service, notification_service=notifier)


@pytest.fixture()
def order_service(db, users):
    return OrderService(db)
