"""
Notification gateway backed by the Supabase `notifications` table.

The notification service reads this table to build each user's feed; the
workflow only inserts rows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from repositories.client import get_supabase, raise_for_error

_NOTIFICATIONS_TABLE: str = "notifications"

# Workflow event name -> notification feed type
_NOTIFICATION_TYPES = {
    "visitor_ready": "ready_for_integration",
}


class SupabaseNotificationGateway:
    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def send(self, event: str, visitor_id: str) -> None:
        payload = {
            "notification_id": str(uuid4()),
            "type": _NOTIFICATION_TYPES.get(event, event),
            "data": {"visitor_id": visitor_id, "event": event},
            "created_at_utc": datetime.now(timezone.utc).isoformat(),
        }
        response = self.client.table(_NOTIFICATIONS_TABLE).insert(payload).execute()
        raise_for_error(response, "send notification")


__all__ = ["SupabaseNotificationGateway"]
