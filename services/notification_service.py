"""
Notification dispatcher.

Notifications are advisory: a failed or slow send never fails or rolls back the
transition that triggered it. Each send runs on a worker thread and is waited on
for at most `timeout_seconds`; past that the outcome is reported as unresolved.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from enum import Enum
from typing import Optional

from domain.lifecycle import READY_NOTIFICATION
from repositories.interfaces import NotificationGateway

logger = logging.getLogger(__name__)


class NotificationStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    UNRESOLVED = "unresolved"
    DISABLED = "disabled"


class NotificationDispatcher:
    def __init__(
        self,
        gateway: NotificationGateway,
        *,
        timeout_seconds: float = 5.0,
        enabled: bool = True,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._gateway = gateway
        self._timeout = timeout_seconds
        self._enabled = enabled
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="visitor-notify")

    def notify_ready(self, visitor_id: str) -> NotificationStatus:
        """Tell stakeholders a visitor is ready for integration."""
        return self.dispatch(READY_NOTIFICATION, visitor_id)

    def dispatch(self, event: str, visitor_id: str) -> NotificationStatus:
        log_context = {"visitor_id": visitor_id, "notification_event": event}

        if not self._enabled:
            logger.debug("Notifications disabled; skipping", extra=log_context)
            return NotificationStatus.DISABLED

        future = self._executor.submit(self._gateway.send, event, visitor_id)
        try:
            future.result(timeout=self._timeout)
        except FutureTimeout:
            logger.warning(
                f"Notification '{event}' not confirmed within {self._timeout}s",
                extra=log_context,
            )
            return NotificationStatus.UNRESOLVED
        except Exception:
            logger.warning(f"Notification '{event}' failed", extra=log_context, exc_info=True)
            return NotificationStatus.FAILED

        logger.info(f"Notification '{event}' delivered", extra=log_context)
        return NotificationStatus.DELIVERED

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


__all__ = ["NotificationDispatcher", "NotificationStatus"]
