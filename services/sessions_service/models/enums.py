"""Enum definitions for sessions service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Stored value is authoritative only for these; the rest are derived at read time.
TERMINAL_SESSION_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED)
