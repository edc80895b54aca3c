# storefront/utils/logging.py
import logging
import sys

from storefront.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_root() -> logging.Logger:
    root = logging.getLogger("storefront")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(LOG_LEVEL.upper())
    return root


def get_logger(name: str) -> logging.Logger:
    _configure_root()
    if not name.startswith("storefront"):
        name = f"storefront.{name}"
    return logging.getLogger(name)
