"""Loguru sink configuration."""
import logging
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[component]} | {name}:{function} | {message}"
)


class InterceptHandler(logging.Handler):
    """Route standard-library records (APScheduler, aiohttp) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).bind(component=record.name).log(
            level, record.getMessage()
        )


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    debug: bool = False,
) -> None:
    """
    Replace loguru's default sink with a stderr sink (and an optional
    rotating file sink) and forward stdlib logging into it.
    """
    level = "DEBUG" if debug else level.upper()

    logger.remove()
    logger.configure(extra={"component": "-"})
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        logger.add(
            log_file,
            level=level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )

    # loguru-only levels (TRACE, SUCCESS) have no stdlib name
    std_level = {"TRACE": "DEBUG", "SUCCESS": "INFO"}.get(level, level)
    logging.basicConfig(handlers=[InterceptHandler()], level=std_level, force=True)


def configure_from_settings(settings) -> None:
    configure_logging(settings.log_level, settings.log_file, settings.debug)
