"""User facing notifications"""

from enum import Enum
from typing import Callable

from loguru import logger


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    NONE = "none"


Notifier = Callable[[str, Severity], None]


def log_notifier(message: str, severity: Severity = Severity.NONE) -> None:
    """Default sink: notifications go to the log"""
    if severity == Severity.DANGER:
        logger.error(message)
    elif severity == Severity.WARNING:
        logger.warning(message)
    else:
        logger.info(message)
