import sys

from loguru import logger

from videotube.config import settings


def configure_logging():
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        serialize=settings.LOG_JSON,
        backtrace=False,
        diagnose=False,
    )
