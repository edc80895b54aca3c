# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import create_db_engine, create_session_factory, init_db
from storefront.data.models import ProductVariationModel, UserModel
from storefront.utils.settings import DATABASE_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

USERS = [
    {"id": 1, "name": "Admin", "is_admin": True},
    {"id": 2, "name": "Klient", "is_admin": False},
]

VARIATIONS = [
    {"id": 1, "product_id": 1, "sku": "TEE-BLK-M", "price": Decimal("79.99"), "stock": 20, "size": "M", "color": "black"},
    {"id": 2, "product_id": 1, "sku": "TEE-BLK-L", "price": Decimal("79.99"), "sale_price": Decimal("59.99"), "stock": 5, "size": "L", "color": "black"},
    {"id": 3, "product_id": 2, "sku": "HOODIE-GRY-M", "price": Decimal("199.00"), "stock": 3, "size": "M", "color": "grey"},
]


def seed(database_url: str | None = None):
    engine = create_db_engine(database_url or DATABASE_URL)
    init_db(engine)
    db = create_session_factory(engine)()
    try:
        # nie nadpisujemy: seed tylko do pustej bazy
        if db.query(UserModel).first():
            logger.info("Baza nie jest pusta, pomijam seed")
            return
        db.add_all(UserModel(**u) for u in USERS)
        db.add_all(ProductVariationModel(**v) for v in VARIATIONS)
        db.commit()
        logger.info(f"Seed: {len(USERS)} uzytkownikow, {len(VARIATIONS)} wariantow")
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    seed()
