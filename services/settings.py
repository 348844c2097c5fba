"""
Workflow settings.

Read from the environment (and a project-root .env file) once, into an immutable
value passed to the service builder.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

_BACKENDS = ("supabase", "memory")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    text = raw.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class WorkflowSettings:
    """
    visitor_store_backend: "supabase" (default) or "memory"
    max_conflict_retries: attempts at an optimistic write before giving up
    notification_timeout_seconds: how long a transition waits on a notification
    notifications_enabled: master switch for the notification dispatcher
    log_level: root log level for the API process
    """

    visitor_store_backend: str = "supabase"
    max_conflict_retries: int = 3
    notification_timeout_seconds: float = 5.0
    notifications_enabled: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.visitor_store_backend not in _BACKENDS:
            raise ValueError(
                f"VISITOR_STORE_BACKEND must be one of {', '.join(_BACKENDS)}, "
                f"got {self.visitor_store_backend!r}"
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "WorkflowSettings":
        if env is None:
            load_dotenv(dotenv_path=env_path)
            env = os.environ
        return cls(
            visitor_store_backend=(env.get("VISITOR_STORE_BACKEND") or "supabase").strip().lower(),
            max_conflict_retries=_get_int(env, "VISITOR_CONFLICT_RETRIES", 3, minimum=1),
            notification_timeout_seconds=_get_float(env, "NOTIFICATION_TIMEOUT_SECONDS", 5.0),
            notifications_enabled=_get_bool(env, "NOTIFICATIONS_ENABLED", True),
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        )
