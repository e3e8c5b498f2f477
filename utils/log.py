import sys

from loguru import logger

from config import LOG_FILE, LOG_LEVEL

FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"

logger.remove()
logger.add(sys.stderr, level=LOG_LEVEL.upper(), format=FORMAT)

if LOG_FILE:
    # delay=True: the file is only created on the first write
    logger.add(
        LOG_FILE,
        level="DEBUG",
        format=FORMAT,
        rotation="10 MB",
        retention=5,
        encoding="utf-8",
        delay=True,
    )

__all__ = ["logger"]
