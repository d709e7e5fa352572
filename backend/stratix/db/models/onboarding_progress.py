"""OnboardingProgress model: one row per (session, step), never deleted."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from stratix.db.base import Base


class OnboardingProgress(Base):
    __tablename__ = "onboarding_progress"
    __table_args__ = (UniqueConstraint("session_id", "step_number", name="uq_onboarding_progress_session_step"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(UUID(as_uuid=True), ForeignKey("onboarding_sessions.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    step_name = Column(String(50), nullable=False)

    step_data = Column(JSON, nullable=False, default=dict)
    ai_validation = Column(JSON, nullable=True)  # {is_valid, errors, warnings, validated_at}

    completed = Column(Boolean, nullable=False, default=False)
    skipped = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    completion_time = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}
