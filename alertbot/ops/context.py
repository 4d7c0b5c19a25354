from __future__ import annotations
from contextvars import ContextVar
from typing import Optional

# Context-local (safe for async & threads)
_current_alert_id: ContextVar[Optional[str]] = ContextVar(
    "current_alert_id", default=None
)


def set_alert_id(alert_id: str) -> None:
    _current_alert_id.set(alert_id)


def get_alert_id() -> Optional[str]:
    return _current_alert_id.get()


def clear_alert_id() -> None:
    _current_alert_id.set(None)
