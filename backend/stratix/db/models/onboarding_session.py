"""OnboardingSession model: one wizard run per user with a JSON form payload and lazy expiry."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID

from stratix.db.base import Base


class OnboardingSession(Base):
    __tablename__ = "onboarding_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)

    # Session state
    status = Column(String(20), nullable=False, default="in_progress")  # in_progress, completed, abandoned
    current_step = Column(Integer, nullable=False, default=1)
    total_steps = Column(Integer, nullable=False, default=5)
    completion_percentage = Column(Integer, nullable=False, default=0)

    # JSON columns, validated at the boundary by the step validator
    form_data = Column(JSON, nullable=False, default=dict)  # {step_name: {field: value}}
    ai_analysis = Column(JSON, nullable=True)

    # Optimistic concurrency: bumped by the ORM on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}
