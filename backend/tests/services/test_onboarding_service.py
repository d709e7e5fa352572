"""Integration tests for OnboardingService against PostgreSQL."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from stratix.core.exceptions import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from stratix.domain.feedback import MESSAGES
from stratix.metrics import events
from stratix.services.onboarding_service import OnboardingService

pytestmark = pytest.mark.integration

WELCOME_DATA = {
    "full_name": "Ana",
    "job_title": "CEO",
    "experience_with_okr": "none",
    "primary_goal": "Grow",
    "urgency_level": "high",
}

STEP_DATA = {
    1: WELCOME_DATA,
    2: {"company_name": "Acme", "company_size": "startup", "description": "Software de logística", "country": "México"},
    3: {"okr_maturity": "beginner", "current_challenges": ["alignment"], "business_goals": ["revenue_growth"]},
    4: {
        "communication_style": "formal",
        "language": "es",
        "notification_frequency": "weekly",
        "focus_areas": ["strategy"],
        "ai_assistance_level": "moderate",
    },
}


@pytest.fixture
def service(engine):
    return OnboardingService(engine=engine)


@pytest.fixture
def emitted():
    with patch("stratix.services.onboarding_service.events.emit_onboarding_event", new_callable=AsyncMock) as emit:
        yield emit


async def _complete_steps(service, user_id, session_id, through=4):
    for step_number in range(1, through + 1):
        await service.submit_step(user_id, session_id, step_number, STEP_DATA[step_number], completed=True)


async def test_start_creates_session_with_first_step(service, user_a, emitted):
    result = await service.start(user_a, preferences={"language": "en", "communication_style": "informal"})

    assert result.resumed is False
    assert result.session.current_step == 1
    assert result.session.form_data["user_preferences"]["language"] == "en"
    assert result.greeting.startswith("Hey there!")
    assert result.current_step_info["step_name"] == "welcome"

    _, progress = await service.get_progress(user_a, result.session.id)
    assert [p.step_number for p in progress] == [1]
    emitted.assert_awaited_with(events.SESSION_STARTED, user_a, 1)


async def test_start_resumes_active_session(service, user_a, emitted):
    first = await service.start(user_a)

    second = await service.start(user_a)

    assert second.resumed is True
    assert second.session.id == first.session.id
    assert second.greeting


async def test_restart_abandons_previous_session(service, user_a, emitted):
    first = await service.start(user_a)

    second = await service.start(user_a, restart=True)

    assert second.session.id != first.session.id
    old, _ = await service.get_progress(user_a, first.session.id)
    assert old.status == "abandoned"


async def test_expired_active_session_is_replaced(service, user_a, emitted):
    past = datetime.now(UTC) - timedelta(days=30)
    first = await service.start(user_a, now=past)

    second = await service.start(user_a)

    assert second.resumed is False
    assert second.session.id != first.session.id


async def test_submit_first_step_advances(service, user_a, emitted):
    started = await service.start(user_a)

    result = await service.submit_step(
        user_a, started.session.id, 1, WELCOME_DATA, completed=True, auto_advance=True
    )

    assert result.session.current_step == 2
    assert result.session.completion_percentage >= 20
    assert result.session.form_data["welcome"] == WELCOME_DATA
    assert result.plan.feedback == MESSAGES[(1, "none")]
    assert result.progress.completed is True
    assert result.progress.ai_validation["is_valid"] is True
    assert result.next_step_info["step_number"] == 2


async def test_invalid_final_step_records_result_but_keeps_session(service, user_a, emitted):
    started = await service.start(user_a)
    session_id = started.session.id
    await service.update_session_fields(user_a, session_id, {"current_step": 5})

    result = await service.submit_step(user_a, session_id, 5, {"confirmed": "false"}, completed=True)

    assert result.plan.validation.is_valid is False
    assert result.plan.validation.errors == ["Debe confirmar que la información es correcta"]
    assert result.session.current_step == 5
    assert result.session.status == "in_progress"
    assert result.progress.completed is False
    assert result.progress.ai_validation["is_valid"] is False

    status = await service.get_status(user_a)
    assert status["flags"]["needs_validation"] is True


async def test_confirmed_final_step_completes_session(service, user_a, emitted):
    started = await service.start(user_a)
    session_id = started.session.id
    await _complete_steps(service, user_a, session_id)

    result = await service.submit_step(user_a, session_id, 5, {"confirmed": "true"}, completed=True)

    assert result.session.status == "completed"
    assert result.session.completion_percentage == 100
    assert result.session.completed_at is not None
    emitted.assert_any_await(events.SESSION_COMPLETED, user_a, 5)


async def test_final_step_cannot_complete_with_earlier_steps_pending(service, user_a, emitted):
    started = await service.start(user_a)
    session_id = started.session.id

    with pytest.raises(InvalidArgumentError, match="Faltan 4 pasos por completar"):
        await service.submit_step(user_a, session_id, 5, {"confirmed": "true"}, completed=True)

    row, _ = await service.get_progress(user_a, session_id)
    assert row.status == "in_progress"
    assert row.current_step == 1
    assert row.completion_percentage == 0
    assert row.completed_at is None


async def test_submit_rejects_step_out_of_range(service, user_a, emitted):
    started = await service.start(user_a)

    with pytest.raises(InvalidArgumentError):
        await service.submit_step(user_a, started.session.id, 6, {})


async def test_submit_rejects_stale_version(service, user_a, emitted):
    started = await service.start(user_a)
    await service.submit_step(user_a, started.session.id, 1, WELCOME_DATA, completed=True)

    with pytest.raises(ConflictError):
        await service.submit_step(user_a, started.session.id, 2, {}, expected_version=1)


async def test_submit_to_abandoned_session_rejected(service, user_a, emitted):
    started = await service.start(user_a)
    await service.abandon(user_a, started.session.id)

    with pytest.raises(InvalidArgumentError):
        await service.submit_step(user_a, started.session.id, 1, WELCOME_DATA)


async def test_other_user_is_forbidden(service, user_a, user_b, emitted):
    started = await service.start(user_a)

    with pytest.raises(ForbiddenError):
        await service.get_progress(user_b, started.session.id)
    with pytest.raises(ForbiddenError):
        await service.submit_step(user_b, started.session.id, 1, WELCOME_DATA)
    with pytest.raises(ForbiddenError):
        await service.abandon(user_b, started.session.id)


async def test_unknown_session_not_found(service, user_a):
    with pytest.raises(NotFoundError):
        await service.get_progress(user_a, "00000000-0000-0000-0000-000000000000")


async def test_status_without_session(service, user_a):
    status = await service.get_status(user_a)

    assert status["status"] == "not_started"
    assert status["flags"]["should_redirect"] is True


async def test_session_detail_metrics(service, user_a, emitted):
    started = await service.start(user_a)
    await service.submit_step(user_a, started.session.id, 1, WELCOME_DATA, completed=True)

    detail = await service.get_session_detail(user_a, started.session.id)

    assert detail.status == "in_progress"
    assert detail.metrics["completed_steps"] == 1
    assert detail.metrics["remaining_steps"] == 4
    # company 4 + organization 5 + preferences 3 + review 2
    assert detail.metrics["estimated_remaining_minutes"] == 14


async def test_patch_merges_form_data_per_step(service, user_a, emitted):
    started = await service.start(user_a)
    await service.submit_step(user_a, started.session.id, 1, WELCOME_DATA, completed=True)

    row = await service.update_session_fields(
        user_a, started.session.id, {"form_data": {"company": {"company_name": "Acme"}}}
    )

    assert row.form_data["welcome"] == WELCOME_DATA
    assert row.form_data["company"] == {"company_name": "Acme"}


async def test_patch_requires_patchable_fields(service, user_a, emitted):
    started = await service.start(user_a)

    with pytest.raises(InvalidArgumentError, match="No hay campos válidos"):
        await service.update_session_fields(user_a, started.session.id, {"status": "completed"})


async def test_abandon_completed_session_rejected(service, user_a, emitted):
    started = await service.start(user_a)
    await _complete_steps(service, user_a, started.session.id)
    await service.submit_step(user_a, started.session.id, 5, {"confirmed": "true"}, completed=True)

    with pytest.raises(InvalidArgumentError):
        await service.abandon(user_a, started.session.id)


async def test_reactivate_abandons_other_active_session(service, user_a, emitted):
    first = await service.start(user_a)
    second = await service.start(user_a, restart=True)

    reactivated = await service.reactivate(user_a, first.session.id)

    assert reactivated.status == "in_progress"
    other, _ = await service.get_progress(user_a, second.session.id)
    assert other.status == "abandoned"


async def test_reactivate_requires_abandoned(service, user_a, emitted):
    started = await service.start(user_a)

    with pytest.raises(InvalidArgumentError):
        await service.reactivate(user_a, started.session.id)


async def test_complete_with_steps_pending_is_rejected(service, user_a, emitted):
    started = await service.start(user_a)
    await _complete_steps(service, user_a, started.session.id, through=3)

    with pytest.raises(InvalidArgumentError, match="Faltan 2 pasos por completar"):
        await service.complete(user_a, started.session.id)


async def test_complete_merges_final_data(service, user_a, emitted):
    started = await service.start(user_a)
    session_id = started.session.id
    await _complete_steps(service, user_a, session_id)
    await service.submit_step(user_a, session_id, 5, {"confirmed": "true"}, skipped=True)

    result = await service.complete(user_a, session_id, final_data={"review": {"confirmed": "true", "setup_demo": "yes"}})

    assert result.session.status == "completed"
    assert result.session.completion_percentage == 100
    assert result.session.form_data["review"]["setup_demo"] == "yes"
    assert result.session.form_data["welcome"] == WELCOME_DATA
    assert result.report["ai_summary"].startswith("¡Felicitaciones, Ana!")
    emitted.assert_any_await(events.SESSION_COMPLETED, user_a, 5)

    report = await service.get_completion(user_a, session_id)
    assert report.report == result.report


async def test_get_completion_requires_completed_session(service, user_a, user_b, emitted):
    started = await service.start(user_a)

    with pytest.raises(InvalidArgumentError, match="no está completada"):
        await service.get_completion(user_a, started.session.id)
    with pytest.raises(ForbiddenError):
        await service.get_completion(user_b, started.session.id)
