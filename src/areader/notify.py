"""User-facing notices emitted by the reading core."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

LOGGER = logging.getLogger(__name__)


class Notifier:
    """Default notifier that only writes notices to the log.

    Collaborators subclass this to surface messages in their own UI.
    """

    def info(self, message: str) -> None:
        LOGGER.info(message)

    def error(self, message: str) -> None:
        LOGGER.error(message)


@dataclass(slots=True)
class Notice:
    level: str
    message: str

    def as_payload(self) -> Dict[str, Any]:
        return {"level": self.level, "message": self.message}


@dataclass
class CollectingNotifier(Notifier):
    """Notifier that records notices so they can be returned in payloads."""

    notices: List[Notice] = field(default_factory=list)

    def info(self, message: str) -> None:
        super().info(message)
        self.notices.append(Notice("info", message))

    def error(self, message: str) -> None:
        super().error(message)
        self.notices.append(Notice("error", message))

    def drain(self) -> List[Notice]:
        """Return and forget the recorded notices."""
        notices, self.notices = self.notices, []
        return notices
