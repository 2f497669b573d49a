"""Fire-and-forget notification dispatch."""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, event: str, recipient_member_id: int, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: writes notifications to the application log."""

    def notify(self, event: str, recipient_member_id: int, payload: dict[str, Any]) -> None:
        logger.info("notification %s -> member %s: %s", event, recipient_member_id, payload)
