# storefront/services/transaction.py
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from tenacity import RetryError

from storefront.domain.errors import Conflict, StoreContention
from storefront.utils.retry import contention_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_in_transaction(db: Session, work: Callable[[], T], what: str) -> T:
    """
    Wykonuje `work` jako jedna transakcje: commit albo pelny rollback.

    Przegrany wyscig (StoreContention, naruszenie unikalnosci, blokada/
    deadlock w bazie) -> rollback i jeszcze jedna proba od zera.
    Druga porazka -> Conflict. Bledy biznesowe leca dalej bez retry.
    """
    try:
        for attempt in contention_retry(StoreContention):
            with attempt:
                n = attempt.retry_state.attempt_number
                if n > 1:
                    logger.info(f"{what}: ponawiam po konflikcie (proba {n})")
                try:
                    result = work()
                    db.commit()
                except (StoreContention, IntegrityError, OperationalError) as e:
                    db.rollback()
                    logger.warning(f"{what}: konflikt wspolbieznosci ({type(e).__name__})")
                    raise StoreContention(str(e)) from e
                except Exception:
                    db.rollback()
                    raise
    except RetryError as e:
        raise Conflict(f"{what}: konflikt wspolbieznosci, sprobuj ponownie") from e
    return result
