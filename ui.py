"""User-visible notifications and navigation state."""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: Optional[str] = None
    variant: str = "default"


class Notifier:
    """Non-blocking notifications, kept in order for the UI to render."""

    def __init__(self, on_notify: Optional[Callable[[Notification], None]] = None):
        self.history: List[Notification] = []
        self.on_notify = on_notify

    def notify(self, title: str, description: Optional[str] = None, variant: str = "default") -> Notification:
        note = Notification(title, description, variant)
        self.history.append(note)
        log = logger.warning if variant == "destructive" else logger.info
        log(f"{title}: {description}" if description else title)
        if self.on_notify:
            self.on_notify(note)
        return note

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def titles(self) -> List[str]:
        return [n.title for n in self.history]


class Navigator:
    def __init__(self, location: str = "/"):
        self.location = location
        self.return_to: Optional[str] = None
        self.history: List[str] = [location]

    def go(self, path: str, return_to: Optional[str] = None) -> None:
        logger.debug(f"navigate {self.location} -> {path}")
        self.location = path
        self.return_to = return_to
        self.history.append(path)
