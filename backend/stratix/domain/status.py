"""Session state resolution and read-only status projections.

Pure functions, no DB access. Sessions and progress rows are read by
attribute, so ORM rows and plain snapshots both work.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from stratix.domain.session_state import SessionStatus
from stratix.domain.steps import DEFAULT_STEP_MINUTES, DEFAULT_TOTAL_STEPS, estimated_minutes, get_step, step_name_for


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_expired(session: Any, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    expires_at = getattr(session, "expires_at", None)
    if expires_at is None:
        return False
    return _aware(now) > _aware(expires_at)


def resolve_status(session: Any | None, now: datetime | None = None) -> SessionStatus:
    """Return the externally reported status of a session.

    Rules:
        - No session row: NOT_STARTED
        - Stored COMPLETED: COMPLETED, even past expires_at
        - now > expires_at: EXPIRED (never written back)
        - Otherwise the stored status
    """
    if session is None:
        return SessionStatus.NOT_STARTED

    stored = SessionStatus(session.status)
    if stored == SessionStatus.COMPLETED:
        return stored

    if is_expired(session, now):
        return SessionStatus.EXPIRED

    return stored


def completed_steps(progress: Iterable[Any]) -> list[int]:
    """Sorted step numbers whose progress row is marked completed."""
    return sorted(p.step_number for p in progress if p.completed)


def skipped_steps(progress: Iterable[Any]) -> list[int]:
    return sorted(p.step_number for p in progress if p.skipped)


def estimated_time_remaining(current_step: int, total_steps: int) -> int:
    """Minutes for every step strictly after ``current_step``."""
    return sum(estimated_minutes(step) for step in range(current_step + 1, total_steps + 1))


def completion_percentage(stored: int | None, current_step: int, total_steps: int) -> int:
    """Stored percentage is a floor: max(stored, current_step / total_steps * 100), capped at 100."""
    stored = stored or 0
    if total_steps <= 0:
        return min(stored, 100)
    derived = int(current_step / total_steps * 100)
    return min(max(stored, derived), 100)


def next_step_info(current_step: int, total_steps: int) -> dict | None:
    """Metadata for the step after ``current_step``, or None past the end."""
    number = current_step + 1
    if number > total_steps:
        return None

    step = get_step(number)
    if step is None:
        return {
            "number": number,
            "name": f"Paso {number}",
            "description": "Siguiente paso del proceso",
            "estimated_time": DEFAULT_STEP_MINUTES,
        }
    return {
        "number": number,
        "name": step.title,
        "description": step.description,
        "estimated_time": step.estimated_time,
    }


def needs_validation(progress: Iterable[Any]) -> bool:
    """True when any stored step result failed validation."""
    for p in progress:
        result = p.ai_validation or {}
        if result and result.get("is_valid") is False:
            return True
    return False


def status_flags(status: SessionStatus, session: Any | None, progress: Iterable[Any] = ()) -> dict[str, bool]:
    return {
        "can_resume": status == SessionStatus.IN_PROGRESS,
        "has_expired": status == SessionStatus.EXPIRED,
        "needs_validation": needs_validation(progress) if session is not None else False,
        "should_redirect": status == SessionStatus.NOT_STARTED and session is None,
    }


# Insight helpers: deterministic, no AI involved

_STEP_SUGGESTIONS: dict[int, list[str]] = {
    1: ["Completa tu información de perfil para personalizar la experiencia"],
    2: ["Define el tamaño de tu equipo para configurar estructuras apropiadas"],
    3: [
        "Establece objetivos SMART para tu organización",
        "Considera objetivos a corto, medio y largo plazo",
    ],
    4: [
        "Configura métricas claras y medibles para tus KRs",
        "Establece responsables para cada objetivo",
    ],
    5: [
        "Revisa toda la configuración antes de finalizar",
        "Invita a tu equipo para comenzar a usar el sistema",
    ],
}


def current_suggestions(current_step: int) -> list[str]:
    return list(_STEP_SUGGESTIONS.get(current_step, ["Continúa con el siguiente paso del proceso"]))


def recommended_actions(percentage: int) -> list[str]:
    if percentage < 25:
        return ["Dedica 10-15 minutos para completar la configuración inicial"]
    if percentage < 50:
        return ["Continúa definiendo la información de tu organización"]
    if percentage < 75:
        return ["Establece tus primeros objetivos estratégicos"]
    return ["Finaliza la configuración e invita a tu equipo"]


def personalized_tips(percentage: int) -> list[str]:
    tips = [
        "Tip: Puedes pausar y retomar el proceso en cualquier momento",
        "Tip: Usa el asistente AI para obtener sugerencias personalizadas",
    ]
    if percentage > 0:
        tips.append("Tip: Tu progreso se guarda automáticamente")
    return tips


def build_status_projection(
    session: Any | None,
    progress: list[Any],
    now: datetime | None = None,
    include_ai: bool = True,
) -> dict:
    """Assemble the status payload for a user's latest session.

    Args:
        session: Latest session row for the user, or None
        progress: That session's progress rows
        now: Clock override for deterministic tests
        include_ai: Whether to include the insight block

    Returns:
        Dict with status, session, progress, ai and flags keys
    """
    now = now or datetime.now(timezone.utc)
    status = resolve_status(session, now)

    if session is None:
        return {
            "status": status.value,
            "session": None,
            "progress": {
                "completed_steps": [],
                "current_step_data": None,
                "next_step": next_step_info(0, DEFAULT_TOTAL_STEPS),
            },
            "ai": None,
            "flags": status_flags(status, None),
        }

    percentage = completion_percentage(session.completion_percentage, session.current_step, session.total_steps)
    form_data = session.form_data or {}

    ai = None
    if include_ai:
        has_insights = bool(session.ai_analysis)
        ai = {
            "has_insights": has_insights,
            "suggestions": current_suggestions(session.current_step)[:3] if has_insights else [],
            "recommended_actions": recommended_actions(percentage) if has_insights else [],
            "personalized_tips": personalized_tips(percentage) if has_insights else [],
        }

    return {
        "status": status.value,
        "session": {
            "id": str(session.id),
            "current_step": session.current_step,
            "total_steps": session.total_steps,
            "completion_percentage": percentage,
            "last_activity": session.updated_at.isoformat() if session.updated_at else None,
            "expires_at": session.expires_at.isoformat() if session.expires_at else None,
            "estimated_time_remaining": estimated_time_remaining(session.current_step, session.total_steps),
        },
        "progress": {
            "completed_steps": completed_steps(progress),
            "current_step_data": form_data.get(step_name_for(session.current_step), {}),
            "next_step": next_step_info(session.current_step, session.total_steps),
        },
        "ai": ai,
        "flags": status_flags(status, session, progress),
    }
