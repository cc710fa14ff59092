"""Logging setup for command line use"""

import sys

from loguru import logger

FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{function} - {message}"


def configure_logging(level: str = "WARNING") -> None:
    """Replace loguru's default sink with a stderr sink at ``level``"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=FORMAT)
