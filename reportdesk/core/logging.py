"""
Logging configuration for Report Desk Backend
"""
import logging
import sys
from reportdesk.core.config import settings
from reportdesk.core.constants import SERVICE_NAME

LOG_FORMAT = "%(asctime)s - " + SERVICE_NAME + " - %(name)s - %(levelname)s - %(message)s"

# Libraries that are noisy at INFO
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "passlib": logging.ERROR,
    "multipart": logging.WARNING,
}


def setup_logging() -> None:
    """
    Send application logs to stdout at settings.LOG_LEVEL.

    Report transitions, dropped notifications and persistence timeouts are all
    logged through module loggers under ``reportdesk.*``.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s env=%s", settings.LOG_LEVEL, settings.APP_ENV
    )
