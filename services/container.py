"""
Service wiring.

Builds a VisitorLifecycleService from WorkflowSettings, choosing the Supabase or
in-memory backend. Supabase modules are imported only when selected so the memory
backend runs without credentials.
"""

from __future__ import annotations

import logging
from typing import Optional

from repositories.memory import (
    InMemoryMemberRepository,
    InMemoryNotificationGateway,
    InMemoryVisitorRepository,
)
from services.assignment_service import AssignmentRegistry
from services.integration_service import IntegrationBridge
from services.notification_service import NotificationDispatcher
from services.settings import WorkflowSettings
from services.visitor_lifecycle_service import VisitorLifecycleService

logger = logging.getLogger(__name__)


def build_lifecycle_service(settings: Optional[WorkflowSettings] = None) -> VisitorLifecycleService:
    settings = settings or WorkflowSettings.from_env()

    if settings.visitor_store_backend == "supabase":
        from repositories.member_repository import SupabaseMemberRepository
        from repositories.notification_repository import SupabaseNotificationGateway
        from repositories.visitor_repository import SupabaseVisitorRepository

        visitors = SupabaseVisitorRepository()
        members = SupabaseMemberRepository()
        gateway = SupabaseNotificationGateway()
    else:
        visitors = InMemoryVisitorRepository()
        members = InMemoryMemberRepository()
        gateway = InMemoryNotificationGateway()

    logger.info(f"Visitor workflow using '{settings.visitor_store_backend}' backend")

    dispatcher = NotificationDispatcher(
        gateway,
        timeout_seconds=settings.notification_timeout_seconds,
        enabled=settings.notifications_enabled,
    )
    return VisitorLifecycleService(
        visitors,
        AssignmentRegistry(members, visitors),
        IntegrationBridge(members),
        dispatcher,
        max_conflict_retries=settings.max_conflict_retries,
    )


__all__ = ["build_lifecycle_service"]
