from __future__ import annotations

import sys
from typing import Any

from loguru import logger

from dealership.app.core.settings import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name} | {message}"


def configure_logging(level: str | None = None) -> None:
    """Route loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=(level or settings.log_level).upper(), format=LOG_FORMAT)


def log_api_call(method: str, path: str, **context: Any) -> None:
    logger.debug("API call: {} {} {}", method, path, context or "")


def log_api_error(method: str, path: str, error: BaseException | str, **context: Any) -> None:
    message = str(error)
    logger.error("API error: {} {} | {} {}", method, path, message, context or "")
