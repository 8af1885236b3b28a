"""
Logging setup
Configures the root logger from LOG_LEVEL / LOG_FILE
"""
import logging
import os

from app.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]

    if settings.LOG_FILE:
        try:
            log_dir = os.path.dirname(settings.LOG_FILE)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(settings.LOG_FILE))
        except OSError as e:
            # console only
            logging.getLogger(__name__).warning("Could not open log file %s: %s", settings.LOG_FILE, e)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
