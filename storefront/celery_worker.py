# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CART_IDLE_SECONDS, CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski importowane explicite, zeby Celery je zarejestrowal
celery_app.conf.imports = (
    "storefront.tasks.abandon",
    "storefront.services.notification_service",
)

# porzucone koszyki sprawdzamy co 1/10 okresu bezczynnosci, nie czesciej niz co minute
celery_app.conf.beat_schedule = {
    "abandon-idle-carts": {
        "task": "storefront.tasks.abandon.abandon_idle_carts_task",
        "schedule": float(max(60, CART_IDLE_SECONDS // 10)),
    },
}

celery_app.conf.timezone = "UTC"
