"""User-facing notifications emitted while a submission runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

SUCCESS = "success"
INFO = "info"
ERROR = "error"

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    ERROR: logging.WARNING,
}


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


class Notifier:
    """Collects notifications for one submission and mirrors them to the log."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, level: str, message: str) -> None:
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown notification level: {level}")
        self.notifications.append(Notification(level=level, message=message))
        logger.log(_LOG_LEVELS[level], "notify[%s]: %s", level, message)

    def success(self, message: str) -> None:
        self.notify(SUCCESS, message)

    def info(self, message: str) -> None:
        self.notify(INFO, message)

    def error(self, message: str) -> None:
        self.notify(ERROR, message)
