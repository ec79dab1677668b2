import logging
import sys

from app.core.config import settings

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine")

def setup_logging():
    """
    Configure the ``vetclinic`` logger used across services, jobs and middleware.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger = logging.getLogger("vetclinic")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger

logger = setup_logging()
