"""OnboardingService: orchestrates the onboarding wizard.

Responsibilities:
- Session lifecycle: start/resume, submit step, abandon, reactivate
- Ownership checks on every session read, on top of the RLS policy
- One RLS-scoped unit of work per public call (stratix.db.rls.with_user_context)
- Telemetry events after the unit of work commits
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from stratix.core.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from stratix.db.models.onboarding_progress import OnboardingProgress
from stratix.db.models.onboarding_session import OnboardingSession
from stratix.db.rls import with_user_context
from stratix.domain.feedback import welcome_greeting
from stratix.domain.session_state import SessionStatus
from stratix.domain.status import (
    build_status_projection,
    completed_steps,
    resolve_status,
    skipped_steps,
)
from stratix.domain.steps import estimated_minutes, get_step
from stratix.domain.submission import (
    SessionSnapshot,
    SubmissionPlan,
    merge_form_data,
    plan_step_submission,
    require_steps_done,
)
from stratix.domain.summary import completion_report
from stratix.domain.validation import ValidationResult, validate_step
from stratix.metrics import events
from stratix.services.progress_tracker import ProgressTracker
from stratix.services.session_store import OnboardingSessionStore, check_version

logger = structlog.get_logger(__name__)

# Fields a client may PATCH directly on a session
PATCHABLE_FIELDS = frozenset({"current_step", "form_data", "ai_analysis"})


@dataclass
class StartResult:
    session: OnboardingSession
    resumed: bool
    greeting: str | None = None

    @property
    def current_step_info(self) -> dict | None:
        step = get_step(self.session.current_step)
        return step.to_dict() if step else None


@dataclass
class SubmissionResult:
    session: OnboardingSession
    progress: OnboardingProgress
    plan: SubmissionPlan

    @property
    def next_step_info(self) -> dict | None:
        if not self.plan.advanced:
            return None
        step = get_step(self.session.current_step)
        return step.to_dict() if step else None


@dataclass
class CompletionResult:
    session: OnboardingSession
    report: dict[str, Any]


@dataclass
class SessionDetail:
    session: OnboardingSession
    progress: list[OnboardingProgress]
    status: SessionStatus
    metrics: dict[str, int] = field(default_factory=dict)


def _owned(row: OnboardingSession, user_id: str) -> OnboardingSession:
    if row.user_id != user_id:
        raise ForbiddenError("No autorizado para esta sesión")
    return row


def session_metrics(row: OnboardingSession, progress: list[OnboardingProgress]) -> dict[str, int]:
    """Step counts and time spent/remaining for the session detail view."""
    done = completed_steps(progress)
    spent_seconds = sum(
        (p.completion_time - p.created_at).total_seconds()
        for p in progress
        if p.completion_time is not None and p.created_at is not None
    )
    remaining = [n for n in range(1, row.total_steps + 1) if n not in done]
    return {
        "completed_steps": len(done),
        "skipped_steps": len(skipped_steps(progress)),
        "remaining_steps": len(remaining),
        "total_time_minutes": round(max(spent_seconds, 0) / 60),
        "estimated_remaining_minutes": sum(estimated_minutes(n) for n in remaining),
    }


class OnboardingService:
    """Service layer for the onboarding wizard."""

    def __init__(self, engine: AsyncEngine | None = None):
        """Initialize with an optional engine.

        Args:
            engine: RLS engine override (tests); defaults to the app engine
        """
        self.engine = engine

    async def _run(self, user_id: str, work):
        return await with_user_context(user_id, work, engine=self.engine)

    async def start(
        self,
        user_id: str,
        restart: bool = False,
        preferences: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> StartResult:
        """Resume the user's active session or create a new one.

        An active session that has already expired is abandoned and replaced,
        as is any active session when ``restart`` is set.
        """
        now = now or datetime.now(UTC)
        preferences = preferences or {}
        greeting = welcome_greeting(
            preferences.get("language", "es"),
            preferences.get("communication_style", "formal"),
            preferences.get("experience_level", "beginner"),
        )

        async def work(db: AsyncSession) -> tuple[StartResult, list[tuple[str, int | None]]]:
            store = OnboardingSessionStore(db)
            emitted: list[tuple[str, int | None]] = []

            existing = await store.get_active_session(user_id)
            if existing is not None and not restart and resolve_status(existing, now) == SessionStatus.IN_PROGRESS:
                logger.info("onboarding_session_resumed", session_id=str(existing.id), user_id=user_id)
                return StartResult(session=existing, resumed=True, greeting=greeting), emitted

            if existing is not None:
                await store.abandon_session(existing.id)
                emitted.append((events.SESSION_ABANDONED, None))

            initial_data: dict[str, Any] = {}
            if preferences:
                initial_data["user_preferences"] = preferences
            if context:
                initial_data["context"] = context

            row = await store.create_session(user_id, form_data=initial_data, now=now)
            await ProgressTracker(db).create_step(row.id, 1, get_step(1).step_name, {}, now=now)
            emitted.append((events.SESSION_STARTED, 1))
            return StartResult(session=row, resumed=False, greeting=greeting), emitted

        result, emitted = await self._run(user_id, work)
        for name, step in emitted:
            await events.emit_onboarding_event(name, user_id, step)
        return result

    async def get_active(self, user_id: str, now: datetime | None = None) -> OnboardingSession | None:
        """The user's resumable session, or None."""

        async def work(db: AsyncSession) -> OnboardingSession | None:
            row = await OnboardingSessionStore(db).get_active_session(user_id)
            if row is None or resolve_status(row, now) != SessionStatus.IN_PROGRESS:
                return None
            return row

        return await self._run(user_id, work)

    async def submit_step(
        self,
        user_id: str,
        session_id: UUID | str,
        step_number: int,
        step_data: dict[str, Any],
        completed: bool = False,
        skipped: bool = False,
        auto_advance: bool = True,
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Validate and persist one step submission.

        Invalid payloads are still recorded on the progress row (with their
        validation result) but do not change the session beyond that.

        Raises:
            NotFoundError: Unknown session
            ForbiddenError: Session belongs to another user
            InvalidArgumentError: Session not in progress (including expired), step out of
                range, or final step completed while earlier steps are pending
            ConflictError: expected_version is stale
        """
        now = now or datetime.now(UTC)

        async def work(db: AsyncSession) -> SubmissionResult:
            store = OnboardingSessionStore(db)
            row = _owned(await store.require_session(session_id), user_id)
            check_version("session", row, expected_version)

            if resolve_status(row, now) != SessionStatus.IN_PROGRESS:
                raise InvalidArgumentError("La sesión de onboarding no está activa")

            tracker = ProgressTracker(db)
            existing = await tracker.list_steps(row.id)
            plan = plan_step_submission(
                SessionSnapshot.from_row(row),
                step_number,
                step_data,
                completed,
                skipped,
                auto_advance,
                done_steps=completed_steps(existing) + skipped_steps(existing),
            )

            progress = await tracker.record_submission(
                row.id,
                step_number,
                plan.step_name,
                step_data,
                completed=plan.completed,
                skipped=plan.skipped,
                ai_validation=plan.validation.to_ai_validation(now),
                now=now,
            )

            if plan.validation.is_valid:
                row = await store.update_session(
                    row.id,
                    {
                        "current_step": plan.current_step,
                        "form_data": plan.form_data,
                        "completion_percentage": plan.completion_percentage,
                    },
                    now=now,
                )
                if plan.completes_session:
                    row = await store.complete_session(row.id, now=now)

            logger.info(
                "onboarding_step_submitted",
                session_id=str(row.id),
                user_id=user_id,
                step_number=step_number,
                is_valid=plan.validation.is_valid,
                current_step=row.current_step,
            )
            return SubmissionResult(session=row, progress=progress, plan=plan)

        result = await self._run(user_id, work)

        await events.emit_onboarding_event(events.STEP_SUBMITTED, user_id, step_number)
        if result.plan.completes_session:
            await events.emit_onboarding_event(events.SESSION_COMPLETED, user_id, step_number)
        return result

    async def get_progress(
        self, user_id: str, session_id: UUID | str
    ) -> tuple[OnboardingSession, list[OnboardingProgress]]:
        """Session plus ordered progress rows.

        Raises:
            NotFoundError: Unknown session
            ForbiddenError: Session belongs to another user
        """

        async def work(db: AsyncSession) -> tuple[OnboardingSession, list[OnboardingProgress]]:
            store = OnboardingSessionStore(db)
            found = await store.get_session_with_progress(session_id)
            if found is None:
                raise NotFoundError("Sesión de onboarding no encontrada")
            row, progress = found
            return _owned(row, user_id), progress

        return await self._run(user_id, work)

    async def get_session_detail(self, user_id: str, session_id: UUID | str, now: datetime | None = None) -> SessionDetail:
        row, progress = await self.get_progress(user_id, session_id)
        return SessionDetail(
            session=row,
            progress=progress,
            status=resolve_status(row, now),
            metrics=session_metrics(row, progress),
        )

    async def get_status(self, user_id: str, include_ai: bool = True, now: datetime | None = None) -> dict:
        """Status projection for the user's latest session (or not_started)."""

        async def work(db: AsyncSession) -> tuple[OnboardingSession | None, list[OnboardingProgress]]:
            row = await OnboardingSessionStore(db).get_latest_session(user_id)
            if row is None:
                return None, []
            return row, await ProgressTracker(db).list_steps(row.id)

        row, progress = await self._run(user_id, work)
        return build_status_projection(row, progress, now=now, include_ai=include_ai)

    async def update_session_fields(
        self,
        user_id: str,
        session_id: UUID | str,
        fields: dict[str, Any],
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> OnboardingSession:
        """Direct PATCH of current_step, form_data (merged per step) or ai_analysis.

        Raises:
            InvalidArgumentError: No patchable field given, or session not in progress
        """
        updates = {k: v for k, v in fields.items() if k in PATCHABLE_FIELDS and v is not None}
        if not updates:
            raise InvalidArgumentError("No hay campos válidos para actualizar")

        async def work(db: AsyncSession) -> OnboardingSession:
            store = OnboardingSessionStore(db)
            row = _owned(await store.require_session(session_id), user_id)
            check_version("session", row, expected_version)

            if resolve_status(row, now) != SessionStatus.IN_PROGRESS:
                raise InvalidArgumentError("Solo se pueden actualizar sesiones en progreso")

            if "form_data" in updates:
                merged = dict(row.form_data or {})
                for step_name, step_data in updates["form_data"].items():
                    if not isinstance(step_data, dict):
                        raise InvalidArgumentError(f"form_data.{step_name} must be an object")
                    merged = merge_form_data(merged, step_name, step_data)
                updates["form_data"] = merged

            return await store.update_session(row.id, updates, now=now)

        return await self._run(user_id, work)

    async def abandon(self, user_id: str, session_id: UUID | str) -> OnboardingSession:
        """Soft delete a session. Abandoning twice returns the row unchanged.

        Raises:
            InvalidArgumentError: Session is completed
        """

        async def work(db: AsyncSession) -> OnboardingSession:
            store = OnboardingSessionStore(db)
            row = _owned(await store.require_session(session_id), user_id)
            if row.status == SessionStatus.COMPLETED:
                raise InvalidArgumentError("No se puede eliminar una sesión completada")
            if row.status == SessionStatus.ABANDONED:
                return row
            return await store.abandon_session(row.id)

        row = await self._run(user_id, work)
        await events.emit_onboarding_event(events.SESSION_ABANDONED, user_id)
        return row

    async def complete(
        self,
        user_id: str,
        session_id: UUID | str,
        final_data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> CompletionResult:
        """Finish a session whose steps are all completed or skipped.

        ``final_data`` is merged into form_data key by key before the session
        is marked completed. The report is built from the merged form_data.

        Raises:
            NotFoundError: Unknown session
            ForbiddenError: Session belongs to another user
            InvalidArgumentError: Session not in progress, or steps still pending
        """
        now = now or datetime.now(UTC)

        async def work(db: AsyncSession) -> OnboardingSession:
            store = OnboardingSessionStore(db)
            found = await store.get_session_with_progress(session_id)
            if found is None:
                raise NotFoundError("Sesión de onboarding no encontrada")
            row, progress = found
            _owned(row, user_id)

            status = resolve_status(row, now)
            if status == SessionStatus.COMPLETED:
                raise InvalidArgumentError("La sesión de onboarding ya está completada")
            if status != SessionStatus.IN_PROGRESS:
                raise InvalidArgumentError("La sesión de onboarding no está activa")
            require_steps_done(row.total_steps, completed_steps(progress) + skipped_steps(progress))

            if final_data:
                row = await store.update_session(
                    row.id, {"form_data": {**(row.form_data or {}), **final_data}}, now=now
                )
            return await store.complete_session(row.id, now=now)

        row = await self._run(user_id, work)
        logger.info("onboarding_session_finished", session_id=str(row.id), user_id=user_id)
        await events.emit_onboarding_event(events.SESSION_COMPLETED, user_id, row.current_step)
        return CompletionResult(session=row, report=completion_report(row.form_data))

    async def get_completion(self, user_id: str, session_id: UUID | str) -> CompletionResult:
        """Completion report of an already completed session.

        Raises:
            InvalidArgumentError: Session is not completed
        """
        row, _ = await self.get_progress(user_id, session_id)
        if row.status != SessionStatus.COMPLETED:
            raise InvalidArgumentError("La sesión de onboarding no está completada")
        return CompletionResult(session=row, report=completion_report(row.form_data))

    async def reactivate(self, user_id: str, session_id: UUID | str, now: datetime | None = None) -> OnboardingSession:
        """abandoned -> in_progress. Any other active session is abandoned first.

        Raises:
            InvalidArgumentError: Session is not abandoned
        """

        async def work(db: AsyncSession) -> OnboardingSession:
            store = OnboardingSessionStore(db)
            row = _owned(await store.require_session(session_id), user_id)
            if row.status != SessionStatus.ABANDONED:
                raise InvalidArgumentError("Solo se pueden reactivar sesiones abandonadas")

            active = await store.get_active_session(user_id)
            if active is not None and active.id != row.id:
                await store.abandon_session(active.id)
            return await store.reactivate_session(row.id, now=now)

        row = await self._run(user_id, work)
        await events.emit_onboarding_event(events.SESSION_REACTIVATED, user_id, row.current_step)
        return row

    @staticmethod
    def validate_only(step_number: int, step_data: dict[str, Any]) -> ValidationResult:
        """Validate a payload without touching storage."""
        return validate_step(step_number, step_data)
