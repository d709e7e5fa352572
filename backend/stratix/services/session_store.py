"""OnboardingSessionStore: CRUD over onboarding_sessions rows.

Every method runs on the AsyncSession handed out by
``stratix.db.rls.with_user_context``, so the RLS policy has already narrowed
visible rows to the calling user. Ownership is still checked by the service.

Status changes go through the transition table in
``stratix.domain.session_state``. ``expired`` is never written.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from stratix.core.config import get_settings
from stratix.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from stratix.db.models.onboarding_progress import OnboardingProgress
from stratix.db.models.onboarding_session import OnboardingSession
from stratix.domain.session_state import SessionStatus, can_transition
from stratix.domain.submission import merge_form_data

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"current_step", "form_data", "completion_percentage", "status", "ai_analysis", "expires_at", "completed_at"}
)

_JSON_FIELDS = ("form_data", "ai_analysis")


def parse_session_id(session_id: UUID | str) -> UUID:
    if isinstance(session_id, UUID):
        return session_id
    try:
        return UUID(str(session_id))
    except ValueError as e:
        raise InvalidArgumentError("Invalid session id") from e


def check_version(entity: str, row: Any, expected_version: int | None) -> None:
    if expected_version is not None and row.version != expected_version:
        raise ConflictError(entity, expected_version, row.version)


class OnboardingSessionStore:
    """Queries and writes for onboarding sessions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    def _ttl(self) -> timedelta:
        return timedelta(days=self.settings.onboarding_session_ttl_days)

    async def create_session(
        self,
        user_id: str,
        total_steps: int | None = None,
        form_data: dict | None = None,
        now: datetime | None = None,
    ) -> OnboardingSession:
        """Create an in-progress session at step 1.

        Whether the user may create one (for example while another session is
        still active) is decided by the caller.
        """
        if not user_id or not user_id.strip():
            raise InvalidArgumentError("User ID is required")
        total_steps = total_steps or self.settings.onboarding_total_steps
        if total_steps < 1:
            raise InvalidArgumentError("total_steps must be at least 1")

        now = now or datetime.now(UTC)
        row = OnboardingSession(
            user_id=user_id,
            status=SessionStatus.IN_PROGRESS.value,
            current_step=1,
            total_steps=total_steps,
            completion_percentage=0,
            form_data=form_data or {},
            expires_at=now + self._ttl(),
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()

        logger.info("onboarding_session_created", session_id=str(row.id), user_id=user_id, total_steps=total_steps)
        return row

    async def get_session(self, session_id: UUID | str) -> OnboardingSession | None:
        result = await self.session.execute(
            select(OnboardingSession).where(OnboardingSession.id == parse_session_id(session_id))
        )
        return result.scalar_one_or_none()

    async def require_session(self, session_id: UUID | str) -> OnboardingSession:
        row = await self.get_session(session_id)
        if row is None:
            raise NotFoundError("Sesión de onboarding no encontrada")
        return row

    async def get_active_session(self, user_id: str) -> OnboardingSession | None:
        """Newest in-progress session for a user, or None."""
        result = await self.session.execute(
            select(OnboardingSession)
            .where(
                OnboardingSession.user_id == user_id,
                OnboardingSession.status == SessionStatus.IN_PROGRESS.value,
            )
            .order_by(OnboardingSession.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest_session(self, user_id: str) -> OnboardingSession | None:
        """Newest session of any status for a user, or None."""
        result = await self.session.execute(
            select(OnboardingSession)
            .where(OnboardingSession.user_id == user_id)
            .order_by(OnboardingSession.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_session_with_progress(
        self, session_id: UUID | str
    ) -> tuple[OnboardingSession, list[OnboardingProgress]] | None:
        """Session plus its progress rows ordered by step_number ascending."""
        row = await self.get_session(session_id)
        if row is None:
            return None

        result = await self.session.execute(
            select(OnboardingProgress)
            .where(OnboardingProgress.session_id == row.id)
            .order_by(OnboardingProgress.step_number.asc())
        )
        return row, list(result.scalars().all())

    async def update_session(
        self,
        session_id: UUID | str,
        fields: dict[str, Any],
        expected_version: int | None = None,
        now: datetime | None = None,
    ) -> OnboardingSession:
        """Apply a partial update.

        Args:
            session_id: Session UUID
            fields: Subset of UPDATABLE_FIELDS
            expected_version: Version the caller last read; None skips the check
            now: Clock override

        Raises:
            NotFoundError: Unknown session
            InvalidArgumentError: Unknown field, bad step or illegal transition
            ConflictError: expected_version is stale
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        row = await self.require_session(session_id)
        check_version("session", row, expected_version)

        if "status" in fields and fields["status"] != row.status:
            target = fields["status"]
            if not can_transition(row.status, target):
                raise InvalidArgumentError(f"Cannot transition session from {row.status} to {target}")

        if "current_step" in fields:
            step = fields["current_step"]
            if not isinstance(step, int) or isinstance(step, bool) or not 1 <= step <= row.total_steps:
                raise InvalidArgumentError(f"current_step must be between 1 and {row.total_steps}")

        if "completion_percentage" in fields:
            pct = fields["completion_percentage"]
            if not isinstance(pct, int) or isinstance(pct, bool) or not 0 <= pct <= 100:
                raise InvalidArgumentError("completion_percentage must be between 0 and 100")

        for name, value in fields.items():
            setattr(row, name, value)
            if name in _JSON_FIELDS:
                flag_modified(row, name)
        row.updated_at = now or datetime.now(UTC)

        await self.session.flush()
        logger.debug("onboarding_session_updated", session_id=str(row.id), fields=sorted(fields), version=row.version)
        return row

    async def merge_step_data(
        self,
        session_id: UUID | str,
        step_name: str,
        step_data: dict[str, Any],
        expected_version: int | None = None,
    ) -> OnboardingSession:
        """Overwrite ``form_data[step_name]`` without touching other steps."""
        row = await self.require_session(session_id)
        return await self.update_session(
            row.id,
            {"form_data": merge_form_data(row.form_data, step_name, step_data)},
            expected_version=expected_version,
        )

    async def abandon_session(self, session_id: UUID | str, expected_version: int | None = None) -> OnboardingSession:
        """Soft delete. Rows are kept for analytics."""
        row = await self.update_session(
            session_id, {"status": SessionStatus.ABANDONED.value}, expected_version=expected_version
        )
        logger.info("onboarding_session_abandoned", session_id=str(row.id), user_id=row.user_id)
        return row

    async def reactivate_session(
        self, session_id: UUID | str, expected_version: int | None = None, now: datetime | None = None
    ) -> OnboardingSession:
        """abandoned -> in_progress with a fresh expiry."""
        now = now or datetime.now(UTC)
        row = await self.update_session(
            session_id,
            {"status": SessionStatus.IN_PROGRESS.value, "expires_at": now + self._ttl()},
            expected_version=expected_version,
            now=now,
        )
        logger.info("onboarding_session_reactivated", session_id=str(row.id), user_id=row.user_id)
        return row

    async def complete_session(
        self, session_id: UUID | str, expected_version: int | None = None, now: datetime | None = None
    ) -> OnboardingSession:
        now = now or datetime.now(UTC)
        row = await self.update_session(
            session_id,
            {"status": SessionStatus.COMPLETED.value, "completion_percentage": 100, "completed_at": now},
            expected_version=expected_version,
            now=now,
        )
        logger.info("onboarding_session_completed", session_id=str(row.id), user_id=row.user_id)
        return row
