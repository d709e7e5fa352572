"""Onboarding API routes: session lifecycle, step submission, status, AI assists."""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from stratix.core.auth import AuthUser, require_auth
from stratix.core.exceptions import InvalidArgumentError
from stratix.db.redis import get_redis
from stratix.domain.steps import STEP_NUMBERS_BY_NAME, get_step
from stratix.schemas.onboarding import (
    AbandonSessionResponse,
    ActiveSessionResponse,
    CompleteOnboardingRequest,
    CompletionReportResponse,
    OnboardingProgressResponse,
    OnboardingSessionResponse,
    SessionDetailResponse,
    SessionMetrics,
    SessionPatchRequest,
    SessionProgressResponse,
    SmartCompletionRequest,
    StartOnboardingRequest,
    StartOnboardingResponse,
    StepValidationRequest,
    StepValidationResponse,
    UpdateProgressRequest,
    UpdateProgressResponse,
)
from stratix.services.ai_quota import AIUsageLimiter
from stratix.services.ai_service import SmartCompletionService
from stratix.services.onboarding_service import CompletionResult, OnboardingService

router = APIRouter()


def get_onboarding_service() -> OnboardingService:
    """Dependency that provides the service. Override in tests via app.dependency_overrides."""
    return OnboardingService()


def get_smart_completion() -> SmartCompletionService:
    return SmartCompletionService()


def get_ai_limiter() -> AIUsageLimiter:
    return AIUsageLimiter(get_redis())


def _session_headers(response: Response, session_id: UUID, step_number: int | None = None) -> None:
    response.headers["x-session-id"] = str(session_id)
    if step_number is not None:
        response.headers["x-step-number"] = str(step_number)


def _step_info(step_number: int) -> dict | None:
    step = get_step(step_number)
    return step.to_dict() if step else None


def _completion_response(response: Response, result: CompletionResult) -> CompletionReportResponse:
    _session_headers(response, result.session.id)
    response.headers["x-onboarding-completed"] = "true"
    return CompletionReportResponse(
        session=OnboardingSessionResponse.model_validate(result.session),
        completed_at=result.session.completed_at,
        **result.report,
    )


@router.post("/start", response_model=StartOnboardingResponse)
async def start_onboarding(
    body: StartOnboardingRequest,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Resume the active session, or create one (abandoning the old one on restart)."""
    result = await service.start(
        user.id,
        restart=body.restart,
        preferences=body.user_preferences.model_dump() if body.user_preferences else None,
        context=body.context.model_dump(exclude_none=True) if body.context else None,
    )
    _session_headers(response, result.session.id, result.session.current_step)
    return StartOnboardingResponse(
        session=OnboardingSessionResponse.model_validate(result.session),
        resumed=result.resumed,
        next_step=result.current_step_info,
        ai_greeting=result.greeting,
    )


@router.get("/start", response_model=ActiveSessionResponse)
async def get_active_session(
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    session = await service.get_active(user.id)
    if session is None:
        return ActiveSessionResponse(has_active_session=False, message="No hay sesión de onboarding activa")

    _session_headers(response, session.id, session.current_step)
    return ActiveSessionResponse(
        has_active_session=True,
        session=OnboardingSessionResponse.model_validate(session),
        next_step=_step_info(session.current_step),
    )


@router.put("/progress", response_model=UpdateProgressResponse)
async def update_progress(
    body: UpdateProgressRequest,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Submit one step. Validation failures come back in the body, not as errors."""
    result = await service.submit_step(
        user.id,
        body.session_id,
        body.step_number,
        body.step_data,
        completed=body.completed,
        skipped=body.skipped,
        auto_advance=body.auto_advance,
        expected_version=body.expected_version,
    )
    validation = result.plan.validation

    _session_headers(response, result.session.id, result.session.current_step)
    response.headers["x-validation-status"] = "valid" if validation.is_valid else "invalid"
    return UpdateProgressResponse(
        progress=OnboardingProgressResponse.model_validate(result.progress),
        session=OnboardingSessionResponse.model_validate(result.session),
        ai_feedback=result.plan.feedback,
        validation_errors=validation.errors or None,
        validation_warnings=validation.warnings or None,
        next_step=result.next_step_info,
    )


@router.get("/progress", response_model=SessionProgressResponse)
async def get_progress(
    response: Response,
    session_id: UUID = Query(...),
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    detail = await service.get_session_detail(user.id, session_id)
    _session_headers(response, detail.session.id, detail.session.current_step)
    return SessionProgressResponse(
        session=OnboardingSessionResponse.model_validate(detail.session),
        status=detail.status.value,
        progress=[OnboardingProgressResponse.model_validate(p) for p in detail.progress],
        current_step_info=_step_info(detail.session.current_step),
    )


@router.get("/status")
async def get_status(
    ai: bool = Query(True),
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Derived status projection for the user's latest session."""
    status = await service.get_status(user.id, include_ai=ai)
    status["metadata"] = {"last_checked": datetime.now(UTC).isoformat()}
    return status


@router.post("/complete", response_model=CompletionReportResponse)
async def complete_onboarding(
    body: CompleteOnboardingRequest,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Finish the session once every step is done and return the completion report."""
    result = await service.complete(user.id, body.session_id, final_data=body.final_data)
    return _completion_response(response, result)


@router.get("/complete", response_model=CompletionReportResponse)
async def get_completion_report(
    response: Response,
    session_id: UUID = Query(...),
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Show the completion report of a completed session again."""
    result = await service.get_completion(user.id, session_id)
    return _completion_response(response, result)


@router.get("/session/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: UUID,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    detail = await service.get_session_detail(user.id, session_id)
    _session_headers(response, detail.session.id, detail.session.current_step)
    return SessionDetailResponse(
        session=OnboardingSessionResponse.model_validate(detail.session),
        status=detail.status.value,
        progress=[OnboardingProgressResponse.model_validate(p) for p in detail.progress],
        current_step_info=_step_info(detail.session.current_step),
        metrics=SessionMetrics(**detail.metrics),
    )


@router.patch("/session/{session_id}", response_model=OnboardingSessionResponse)
async def patch_session(
    session_id: UUID,
    body: SessionPatchRequest,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    session = await service.update_session_fields(
        user.id,
        session_id,
        body.model_dump(exclude={"expected_version"}, exclude_none=True),
        expected_version=body.expected_version,
    )
    _session_headers(response, session.id)
    return OnboardingSessionResponse.model_validate(session)


@router.delete("/session/{session_id}", response_model=AbandonSessionResponse)
async def abandon_session(
    session_id: UUID,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Soft delete: the session is marked abandoned, rows are kept."""
    await service.abandon(user.id, session_id)
    return AbandonSessionResponse()


@router.post("/session/{session_id}/reactivate", response_model=OnboardingSessionResponse)
async def reactivate_session(
    session_id: UUID,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
):
    session = await service.reactivate(user.id, session_id)
    _session_headers(response, session.id, session.current_step)
    return OnboardingSessionResponse.model_validate(session)


@router.post("/ai/validate", response_model=StepValidationResponse)
async def ai_validate_step(
    body: StepValidationRequest,
    response: Response,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
    smart: SmartCompletionService = Depends(get_smart_completion),
    limiter: AIUsageLimiter = Depends(get_ai_limiter),
):
    """Schema validation plus an AI review. The AI part degrades to canned output."""
    step_number = STEP_NUMBERS_BY_NAME.get(body.step_name)
    if step_number is None:
        raise InvalidArgumentError(f"Paso no reconocido: {body.step_name}")

    session, _ = await service.get_progress(user.id, body.session_id)
    await limiter.consume(user.id, "validation")

    review = await smart.review_step(step_number, body.step_data, body.context)
    _session_headers(response, session.id)
    response.headers["x-step-name"] = body.step_name
    return StepValidationResponse(**review)


@router.post("/ai/complete")
async def ai_complete(
    body: SmartCompletionRequest,
    user: AuthUser = Depends(require_auth),
    service: OnboardingService = Depends(get_onboarding_service),
    smart: SmartCompletionService = Depends(get_smart_completion),
    limiter: AIUsageLimiter = Depends(get_ai_limiter),
):
    """Smart fill, suggestions or full analysis. Heuristics answer when the AI cannot."""
    operation = "analysis" if body.completion_type == "full_analysis" else "completion"
    session, progress = await service.get_progress(user.id, body.session_id)
    await limiter.consume(user.id, operation)

    form_data = {**(session.form_data or {}), **(body.partial_data or {})}
    payload: dict
    if body.completion_type == "full_analysis":
        payload = await smart.analyze(form_data, session.total_steps, progress)
    else:
        completion = await smart.smart_fill(form_data, body.fields_to_complete)
        if body.completion_type == "suggestions":
            payload = {
                "suggestions": completion["suggestions"],
                "rationale": completion["rationale"],
                "source": completion["source"],
            }
        else:
            payload = completion

    return {
        "session_id": str(session.id),
        "completion_type": body.completion_type,
        "timestamp": datetime.now(UTC).isoformat(),
        **payload,
    }
