"""Onboarding Pydantic schemas: API contracts for the wizard."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserPreferences(BaseModel):
    language: Literal["es", "en"] = "es"
    communication_style: Literal["formal", "informal"] = "formal"
    experience_level: Literal["beginner", "intermediate", "advanced"] = "beginner"


class StartContext(BaseModel):
    source: str | None = None
    utm_params: dict[str, str] | None = None


class StartOnboardingRequest(BaseModel):
    """Start or resume a session. ``restart`` abandons the active one."""

    user_preferences: UserPreferences | None = None
    context: StartContext | None = None
    restart: bool = False


class UpdateProgressRequest(BaseModel):
    """One step submission."""

    session_id: UUID
    step_number: int = Field(..., ge=1, le=10)
    step_data: dict[str, Any] = Field(default_factory=dict)
    completed: bool = False
    skipped: bool = False
    auto_advance: bool = True
    expected_version: int | None = Field(default=None, ge=1)


class SessionPatchRequest(BaseModel):
    current_step: int | None = Field(default=None, ge=1)
    form_data: dict[str, dict[str, Any]] | None = None
    ai_analysis: dict[str, Any] | None = None
    expected_version: int | None = Field(default=None, ge=1)


class StepValidationRequest(BaseModel):
    """AI-assisted review of one step, keyed by step name as the wizard sends it."""

    session_id: UUID
    step_name: str = Field(..., min_length=1)
    step_data: dict[str, Any]
    context: dict[str, Any] | None = None

    @field_validator("step_name")
    @classmethod
    def normalize_step_name(cls, v: str) -> str:
        return v.strip().lower()


class SmartCompletionRequest(BaseModel):
    session_id: UUID
    partial_data: dict[str, Any] | None = None
    completion_type: Literal["smart_fill", "suggestions", "full_analysis"] = "smart_fill"
    fields_to_complete: list[str] | None = None


class OnboardingSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    status: str
    current_step: int
    total_steps: int
    completion_percentage: int
    form_data: dict[str, Any]
    ai_analysis: dict[str, Any] | None = None
    version: int
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class OnboardingProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    step_number: int
    step_name: str
    step_data: dict[str, Any]
    ai_validation: dict[str, Any] | None = None
    completed: bool
    skipped: bool
    version: int
    created_at: datetime
    completion_time: datetime | None = None


class StartOnboardingResponse(BaseModel):
    session: OnboardingSessionResponse
    resumed: bool
    next_step: dict[str, Any] | None
    ai_greeting: str | None = None


class ActiveSessionResponse(BaseModel):
    has_active_session: bool
    session: OnboardingSessionResponse | None = None
    next_step: dict[str, Any] | None = None
    message: str | None = None


class UpdateProgressResponse(BaseModel):
    progress: OnboardingProgressResponse
    session: OnboardingSessionResponse
    ai_feedback: str
    validation_errors: list[str] | None = None
    validation_warnings: list[str] | None = None
    next_step: dict[str, Any] | None = None


class SessionProgressResponse(BaseModel):
    session: OnboardingSessionResponse
    status: str
    progress: list[OnboardingProgressResponse]
    current_step_info: dict[str, Any] | None = None


class SessionMetrics(BaseModel):
    completed_steps: int
    skipped_steps: int
    remaining_steps: int
    total_time_minutes: int
    estimated_remaining_minutes: int


class SessionDetailResponse(SessionProgressResponse):
    metrics: SessionMetrics


class AbandonSessionResponse(BaseModel):
    success: bool = True
    message: str = "Sesión de onboarding marcada como abandonada"


class StepValidationResponse(BaseModel):
    is_valid: bool
    validation_score: int
    errors: list[str]
    warnings: list[str]
    suggestions: list[str]
    next_step_hints: list[str]
    source: str


class CompleteOnboardingRequest(BaseModel):
    """Explicit completion. ``final_data`` keys overwrite form_data keys."""

    session_id: UUID
    final_data: dict[str, Any] | None = None


class RecommendedOKR(BaseModel):
    objective: str
    key_results: list[str]
    rationale: str


class CompletionReportResponse(BaseModel):
    session: OnboardingSessionResponse
    ai_summary: str
    recommended_okrs: list[RecommendedOKR]
    next_steps: list[str]
    completed_at: datetime | None = None
