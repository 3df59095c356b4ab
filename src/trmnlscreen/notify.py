"""User notifications with a suppression policy.

Every notification is logged. Errors are always shown; other kinds are only
shown while notifications are enabled in the settings, unless forced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final, Protocol, runtime_checkable

import typer

logger: Final = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    ERROR = "error"
    INFO = "info"
    SUCCESS = "success"
    PROGRESS = "progress"


DEFAULT_TIMEOUTS: Final = {
    NotificationKind.ERROR: 5,
    NotificationKind.PROGRESS: 3,
    NotificationKind.INFO: 2,
    NotificationKind.SUCCESS: 2,
}

PREFIXES: Final = {
    NotificationKind.ERROR: "⚠ ",
    NotificationKind.SUCCESS: "✓ ",
    NotificationKind.PROGRESS: "⟳ ",
    NotificationKind.INFO: "",
}


@dataclass(frozen=True)
class Notification:
    """A message ready to be shown to the user."""

    kind: NotificationKind
    message: str
    context: str | None
    timeout: int

    @property
    def text(self) -> str:
        body = self.message
        if self.context:
            body = f"{body}\n\n{self.context}"
        return PREFIXES[self.kind] + body


@runtime_checkable
class NotificationSink(Protocol):
    """Protocol for whatever displays notifications (dialog, console...)."""

    def show(self, notification: Notification) -> None: ...


class ConsoleSink:
    """Prints notifications to the terminal."""

    COLORS: Final = {
        NotificationKind.ERROR: typer.colors.RED,
        NotificationKind.SUCCESS: typer.colors.GREEN,
        NotificationKind.PROGRESS: typer.colors.CYAN,
        NotificationKind.INFO: None,
    }

    def show(self, notification: Notification) -> None:
        typer.secho(
            notification.text,
            fg=self.COLORS[notification.kind],
            err=notification.kind is NotificationKind.ERROR,
        )


class MemorySink:
    """Records notifications, for tests and headless runs."""

    def __init__(self) -> None:
        self.shown: list[Notification] = []

    def show(self, notification: Notification) -> None:
        self.shown.append(notification)

    def of_kind(self, kind: NotificationKind) -> list[Notification]:
        return [n for n in self.shown if n.kind is kind]


class Notifier:
    """Routes notifications to a sink according to the user's preference."""

    def __init__(self, sink: NotificationSink, enabled: Callable[[], bool]) -> None:
        """Initialize the notifier.

        Args:
            sink: Where visible notifications go
            enabled: Returns the current "show notifications" setting
        """
        self.sink = sink
        self.enabled = enabled

    def notify(
        self,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
        context: str | None = None,
        timeout: int | None = None,
        force: bool = False,
    ) -> bool:
        """Log and possibly show a notification.

        Returns:
            True if the notification was shown
        """
        logger.info("[%s] %s", kind.value, message)
        if context:
            logger.debug("Context: %s", context)

        if not self.enabled() and kind is not NotificationKind.ERROR and not force:
            return False

        self.sink.show(
            Notification(
                kind=kind,
                message=message,
                context=context,
                timeout=timeout if timeout is not None else DEFAULT_TIMEOUTS[kind],
            )
        )
        return True

    def error(self, message: str, context: str | None = None) -> bool:
        return self.notify(message, NotificationKind.ERROR, context)

    def info(self, message: str) -> bool:
        return self.notify(message, NotificationKind.INFO)

    def success(self, message: str) -> bool:
        return self.notify(message, NotificationKind.SUCCESS)

    def progress(self, message: str, context: str | None = None) -> bool:
        return self.notify(message, NotificationKind.PROGRESS, context)
