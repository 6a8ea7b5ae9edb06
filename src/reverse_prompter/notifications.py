"""User-visible notification sink used by the prompter and the command."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Shows a short, non-blocking message to the user."""

    def notify(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that logs each message and keeps the history for inspection."""

    def __init__(self, *, level: int = logging.INFO) -> None:
        self._level = level
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        LOGGER.log(self._level, message)


__all__ = ["LoggingNotifier", "Notifier"]
