"""
FastAPI dependencies.

One lifecycle service per process: its per-visitor locks only serialize callers
that share it. Tests replace it with `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from services.container import build_lifecycle_service
from services.visitor_lifecycle_service import VisitorLifecycleService


@lru_cache(maxsize=1)
def get_lifecycle_service() -> VisitorLifecycleService:
    return build_lifecycle_service()
