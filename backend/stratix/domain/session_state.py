"""Onboarding session status values and transition validation.

Pure domain logic with no external dependencies.
"""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Stored session status. EXPIRED and NOT_STARTED are only ever derived."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


STORED_STATUSES = frozenset({SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED, SessionStatus.ABANDONED})

# Valid stored-status transitions
TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.ABANDONED}),
    SessionStatus.ABANDONED: frozenset({SessionStatus.IN_PROGRESS}),
    SessionStatus.COMPLETED: frozenset(),  # Terminal state
}


def can_transition(current: str, target: str) -> bool:
    """Return True if ``current -> target`` is a legal stored transition.

    Unknown values and derived statuses (expired, not_started) are never
    legal targets.
    """
    try:
        current_status = SessionStatus(current)
        target_status = SessionStatus(target)
    except ValueError:
        return False

    if target_status not in STORED_STATUSES:
        return False

    return target_status in TRANSITIONS.get(current_status, frozenset())
