"""
Tile Auto-Mapper - Notifications

User-facing messages raised by the editor and its background tasks.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NotificationLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    created: float = field(default_factory=time.monotonic)


class Notifications:
    """Bounded queue of notifications shown in the status bar."""

    def __init__(self, max_entries: int = 50, display_seconds: float = 4.0):
        self.entries: deque[Notification] = deque(maxlen=max_entries)
        self.display_seconds = display_seconds

    def push(self, message: str, level: NotificationLevel = NotificationLevel.INFO):
        self.entries.append(Notification(message, level))

    def info(self, message: str):
        self.push(message, NotificationLevel.INFO)

    def warning(self, message: str):
        self.push(message, NotificationLevel.WARNING)

    def error(self, message: str):
        self.push(message, NotificationLevel.ERROR)

    def latest(self, now: Optional[float] = None) -> Optional[Notification]:
        """Newest notification that is still on screen, if any."""
        if not self.entries:
            return None
        newest = self.entries[-1]
        now = time.monotonic() if now is None else now
        if now - newest.created > self.display_seconds:
            return None
        return newest

    def errors(self) -> list[Notification]:
        return [n for n in self.entries if n.level is NotificationLevel.ERROR]

    def __len__(self) -> int:
        return len(self.entries)
