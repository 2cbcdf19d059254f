from __future__ import annotations

import threading
from typing import Protocol

from loguru import logger


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    def success(self, message: str) -> None:
        logger.info("Notify success: {message}", message=message)

    def error(self, message: str) -> None:
        logger.warning("Notify error: {message}", message=message)


class CollectingNotifier:
    """Keeps messages so an HTTP response can hand them back to the caller."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: list[tuple[str, str]] = []

    def success(self, message: str) -> None:
        with self._lock:
            self.messages.append(("success", message))

    def error(self, message: str) -> None:
        with self._lock:
            self.messages.append(("error", message))

    def texts(self) -> list[str]:
        with self._lock:
            return [message for _, message in self.messages]


def notify(notifier: Notifier | None, level: str, message: str) -> None:
    """Send ``message`` without letting a broken sink affect the caller."""
    if notifier is None:
        return
    try:
        getattr(notifier, level)(message)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Notifier failed to deliver {level} message: {error}", level=level, error=exc)


class FanoutNotifier:
    def __init__(self, *sinks: Notifier) -> None:
        self.sinks = sinks

    def success(self, message: str) -> None:
        for sink in self.sinks:
            notify(sink, "success", message)

    def error(self, message: str) -> None:
        for sink in self.sinks:
            notify(sink, "error", message)
