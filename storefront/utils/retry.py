# storefront/utils/retry.py
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import redis


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def contention_retry(exc_type: type[Exception]) -> Retrying:
    """
    Pierwsza proba + dokladnie jeden retry, bez czekania.
    Po drugim niepowodzeniu tenacity rzuca RetryError (reraise=False),
    wolajacy zamienia go na Conflict.
    """
    return Retrying(
        reraise=False,
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(exc_type),
    )
