# storefront/tasks/abandon.py
from storefront.celery_worker import celery_app
from storefront.data.database import create_db_engine, create_session_factory
from storefront.services.cart_service import CartService
from storefront.utils.settings import DATABASE_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="storefront.tasks.abandon.abandon_idle_carts_task")
def abandon_idle_carts_task():
    logger.info("Abandon idle carts task started")

    engine = create_db_engine(DATABASE_URL)
    db = create_session_factory(engine)()
    try:
        abandoned = CartService(db).abandon_idle_carts()
    finally:
        db.close()
        engine.dispose()

    return {"abandoned": abandoned}
