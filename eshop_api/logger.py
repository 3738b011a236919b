"""
Loguru sinks for the API
"""
import sys

from loguru import logger

from eshop_api.config import settings


def setup_logging(log_dir: str = None, level: str = None):
    """Send logs to stderr and to a rotating file under ``log_dir``"""
    log_dir = log_dir or settings.log_dir
    level = level or settings.log_level
    logger.remove()
    logger.add(sys.stderr, level=level, format="{time} | {level} | {message}")
    logger.add(
        f"{log_dir}/eshop_api.log",
        mode="a",
        level=level,
        format="{time} | {level} | {message}",
        rotation="5 MB",
        retention="7 days"
    )
    logger.info("Logging initialized")
    return logger
