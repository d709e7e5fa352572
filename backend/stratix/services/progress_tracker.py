"""ProgressTracker: one onboarding_progress row per (session, step).

Rows are created on the first submission of a step, overwritten in place on
resubmission and never deleted.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from stratix.core.exceptions import InvalidArgumentError, NotFoundError
from stratix.db.models.onboarding_progress import OnboardingProgress
from stratix.services.session_store import check_version, parse_session_id

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = frozenset({"step_name", "step_data", "completed", "skipped", "ai_validation"})


def _apply_completion_time(row: OnboardingProgress, now: datetime) -> None:
    """Stamp completion_time on the first move into completed/skipped, clear it on the way out."""
    if row.completed or row.skipped:
        if row.completion_time is None:
            row.completion_time = now
    else:
        row.completion_time = None


class ProgressTracker:
    """Per-step submission records for a session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_step(self, session_id: UUID | str, step_number: int) -> OnboardingProgress | None:
        result = await self.session.execute(
            select(OnboardingProgress).where(
                OnboardingProgress.session_id == parse_session_id(session_id),
                OnboardingProgress.step_number == step_number,
            )
        )
        return result.scalar_one_or_none()

    async def list_steps(self, session_id: UUID | str) -> list[OnboardingProgress]:
        result = await self.session.execute(
            select(OnboardingProgress)
            .where(OnboardingProgress.session_id == parse_session_id(session_id))
            .order_by(OnboardingProgress.step_number.asc())
        )
        return list(result.scalars().all())

    async def create_step(
        self,
        session_id: UUID | str,
        step_number: int,
        step_name: str,
        step_data: dict[str, Any] | None = None,
        completed: bool = False,
        skipped: bool = False,
        ai_validation: dict | None = None,
        now: datetime | None = None,
    ) -> OnboardingProgress:
        if step_number < 1:
            raise InvalidArgumentError("Step number must be positive")

        now = now or datetime.now(UTC)
        row = OnboardingProgress(
            session_id=parse_session_id(session_id),
            step_number=step_number,
            step_name=step_name,
            step_data=dict(step_data or {}),
            completed=completed,
            skipped=skipped,
            ai_validation=ai_validation,
            completion_time=now if (completed or skipped) else None,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()

        logger.debug("onboarding_step_created", session_id=str(row.session_id), step_number=step_number)
        return row

    async def update_step(
        self,
        session_id: UUID | str,
        step_number: int,
        fields: dict[str, Any],
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> OnboardingProgress:
        """Merge fields into an existing step row.

        Resubmitting identical values leaves completed and completion_time as
        they were.

        Raises:
            NotFoundError: No row for (session, step)
            InvalidArgumentError: Unknown field
            ConflictError: expected_version is stale
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        row = await self.get_step(session_id, step_number)
        if row is None:
            raise NotFoundError(f"No progress recorded for step {step_number}")
        check_version("progress", row, expected_version)

        now = now or datetime.now(UTC)
        for name, value in fields.items():
            setattr(row, name, value)
            if name in ("step_data", "ai_validation"):
                flag_modified(row, name)
        _apply_completion_time(row, now)
        row.updated_at = now

        await self.session.flush()
        return row

    async def record_submission(
        self,
        session_id: UUID | str,
        step_number: int,
        step_name: str,
        step_data: dict[str, Any],
        completed: bool,
        skipped: bool,
        ai_validation: dict | None,
        now: datetime | None = None,
    ) -> OnboardingProgress:
        """Create the step row on first submission, update it in place afterwards."""
        existing = await self.get_step(session_id, step_number)
        if existing is None:
            return await self.create_step(
                session_id,
                step_number,
                step_name,
                step_data,
                completed=completed,
                skipped=skipped,
                ai_validation=ai_validation,
                now=now,
            )
        return await self.update_step(
            session_id,
            step_number,
            {
                "step_name": step_name,
                "step_data": dict(step_data),
                "completed": completed,
                "skipped": skipped,
                "ai_validation": ai_validation,
            },
            now=now,
        )
