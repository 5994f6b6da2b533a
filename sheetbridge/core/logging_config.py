"""
Logging setup shared by the API process and the background dispatcher.

Pipeline modules log under the ``sheetbridge`` namespace; storage and HTTP
client libraries are held at WARNING so retries do not flood the console.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(name)s | %(message)s"

# Client libraries that log every request or connection retry at INFO/DEBUG
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3")

_is_configured = False


def build_logging_config(level: str) -> Dict[str, Any]:
    log_level = level.upper()
    loggers: Dict[str, Dict[str, Any]] = {
        # Propagates to the root handler; only the level is pinned here
        "sheetbridge": {"level": log_level},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": LOG_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
                "level": log_level,
            }
        },
        "loggers": loggers,
        "root": {
            "handlers": ["console"],
            "level": log_level,
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """
    Apply the logging config once per process.

    Args:
        level: Log level name such as "DEBUG"; defaults to INFO.
    """
    global _is_configured

    if _is_configured:
        return

    dictConfig(build_logging_config(level or "INFO"))
    logging.getLogger(__name__).debug(f"Logging configured at {(level or 'INFO').upper()}")

    _is_configured = True
