"""
User-facing notifications (the toasts of the download page).

The redemption flow receives a sink and calls it; it never reaches for a
global. Any callable taking a Notification works as a sink.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    severity: Severity = Severity.INFO


NotificationSink = Callable[[Notification], None]


class LoggingNotifier:
    """Sink that only writes to the log."""

    def __call__(self, notification: Notification) -> None:
        level = logging.ERROR if notification.severity is Severity.ERROR else logging.INFO
        logger.log(level, f"{notification.title}: {notification.description}")


class ConsoleNotifier:
    """Sink that prints toasts on a rich console."""

    STYLES = {
        Severity.INFO: "green",
        Severity.ERROR: "bold red",
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def __call__(self, notification: Notification) -> None:
        style = self.STYLES[notification.severity]
        self.console.print(f"[{style}]{escape(notification.title)}[/{style}] {escape(notification.description)}",
                           highlight=False)


class CollectingNotifier:
    """Sink that keeps every notification, in order; handy for tests and batch use."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def errors(self) -> List[Notification]:
        return [n for n in self.notifications if n.severity is Severity.ERROR]

    def clear(self):
        self.notifications.clear()
