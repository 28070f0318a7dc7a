import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure the root logger once for the API process or a Celery worker."""
    root = logging.getLogger()
    if getattr(root, "_payout_engine_configured", False):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # SQL echo is too noisy outside debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    root._payout_engine_configured = True
