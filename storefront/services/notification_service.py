# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysylania powiadomien o zlozonym zamowieniu.
    Uzywa Celery do asynchronicznego przetwarzania, wysylka jest best-effort:
    zamowienie jest juz zapisane, blad kolejki tylko logujemy.
    """

    def send_order_placed(self, user_id: int, order_id: int) -> None:
        try:
            send_order_placed_task.delay(user_id, order_id)
        except Exception as e:
            logger.warning(f"Nie udalo sie zakolejkowac powiadomienia o zamowieniu {order_id}: {e}")


@celery_app.task(name="storefront.services.notification_service.send_order_placed_task")
def send_order_placed_task(user_id: int, order_id: int):
    """
    Celery task - w prawdziwym systemie wyslalby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} placed")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}
