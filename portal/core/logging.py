"""
Logging setup. JSON lines via python-json-logger unless DEBUG is on.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from portal.core.config import settings

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# chatty libraries and what they are allowed to say
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "passlib": logging.ERROR,
    "urllib3": logging.WARNING,
    "multipart": logging.WARNING,
    "fontTools": logging.WARNING,
}


class PortalJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = settings.PROJECT_NAME
        log_record["version"] = settings.VERSION
        log_record["level"] = log_record.pop("levelname", record.levelname)
        log_record["logger"] = log_record.pop("name", record.name)


def setup_logging() -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call repeatedly; a handler installed by an earlier call is
    replaced rather than duplicated.
    """
    level = logging.DEBUG if settings.DEBUG else logging.getLevelName(settings.LOG_LEVEL.upper())

    handler = logging.StreamHandler(sys.stdout)
    if settings.DEBUG:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(PortalJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    handler.set_name("portal")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in list(root_logger.handlers):
        if existing.get_name() == "portal":
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
