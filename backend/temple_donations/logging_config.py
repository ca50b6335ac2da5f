"""
Logging setup — console plus a rotating server.log under LOG_DIR.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from temple_donations.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)
    if not any(getattr(h, "_temple_donations", False) for h in root.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler._temple_donations = True
        root.addHandler(stream_handler)

        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "server.log"), maxBytes=5 * 1024 * 1024, backupCount=3,
        )
        file_handler.setFormatter(formatter)
        file_handler._temple_donations = True
        root.addHandler(file_handler)

    # Keep provider client chatter out of the payment log.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("temple_donations")
