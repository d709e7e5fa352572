"""Integration tests for OnboardingSessionStore and ProgressTracker."""

from datetime import UTC, datetime, timedelta

import pytest

from stratix.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from stratix.services.progress_tracker import ProgressTracker
from stratix.services.session_store import OnboardingSessionStore

pytestmark = pytest.mark.integration

NOW = datetime(2030, 6, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def store(db_session):
    return OnboardingSessionStore(db_session)


@pytest.fixture
def tracker(db_session):
    return ProgressTracker(db_session)


# ============================================================================
# Sessions
# ============================================================================


async def test_create_session_defaults(store):
    row = await store.create_session("user_a", total_steps=5, now=NOW)

    assert row.status == "in_progress"
    assert row.current_step == 1
    assert row.total_steps == 5
    assert row.completion_percentage == 0
    assert row.form_data == {}
    assert row.expires_at == NOW + timedelta(days=7)
    assert row.version == 1


async def test_create_session_requires_user(store):
    with pytest.raises(InvalidArgumentError):
        await store.create_session("  ")


async def test_get_session_unknown_returns_none(store):
    assert await store.get_session("00000000-0000-0000-0000-000000000000") is None


async def test_invalid_session_id(store):
    with pytest.raises(InvalidArgumentError):
        await store.get_session("not-a-uuid")


async def test_require_session_raises_not_found(store):
    with pytest.raises(NotFoundError):
        await store.require_session("00000000-0000-0000-0000-000000000000")


async def test_active_session_is_newest_in_progress(store):
    older = await store.create_session("user_a", now=NOW - timedelta(hours=2))
    newer = await store.create_session("user_a", now=NOW)
    await store.create_session("user_b", now=NOW)

    active = await store.get_active_session("user_a")

    assert active.id == newer.id
    await store.abandon_session(newer.id)
    assert (await store.get_active_session("user_a")).id == older.id


async def test_update_session_bumps_version_and_timestamp(store):
    row = await store.create_session("user_a", now=NOW)

    updated = await store.update_session(row.id, {"current_step": 2}, now=NOW + timedelta(minutes=1))

    assert updated.current_step == 2
    assert updated.version == 2
    assert updated.updated_at == NOW + timedelta(minutes=1)


async def test_update_session_rejects_stale_version(store):
    row = await store.create_session("user_a", now=NOW)
    await store.update_session(row.id, {"current_step": 2})

    with pytest.raises(ConflictError):
        await store.update_session(row.id, {"current_step": 3}, expected_version=1)


async def test_update_session_rejects_unknown_fields(store):
    row = await store.create_session("user_a", now=NOW)

    with pytest.raises(InvalidArgumentError):
        await store.update_session(row.id, {"user_id": "user_b"})


async def test_update_session_rejects_step_out_of_range(store):
    row = await store.create_session("user_a", total_steps=5, now=NOW)

    with pytest.raises(InvalidArgumentError):
        await store.update_session(row.id, {"current_step": 6})


async def test_completed_session_cannot_be_reopened(store):
    row = await store.create_session("user_a", now=NOW)
    await store.complete_session(row.id, now=NOW)

    with pytest.raises(InvalidArgumentError):
        await store.update_session(row.id, {"status": "in_progress"})


async def test_expired_is_never_stored(store):
    row = await store.create_session("user_a", now=NOW)

    with pytest.raises(InvalidArgumentError):
        await store.update_session(row.id, {"status": "expired"})


async def test_merge_step_data_is_shallow_per_step(store):
    row = await store.create_session("user_a", form_data={"welcome": {"full_name": "Ana"}}, now=NOW)
    await store.merge_step_data(row.id, "company", {"company_name": "Acme"})

    merged = await store.merge_step_data(row.id, "welcome", {"job_title": "CEO"})

    assert merged.form_data == {"welcome": {"job_title": "CEO"}, "company": {"company_name": "Acme"}}


async def test_reactivate_refreshes_expiry(store):
    row = await store.create_session("user_a", now=NOW - timedelta(days=10))
    await store.abandon_session(row.id)

    reactivated = await store.reactivate_session(row.id, now=NOW)

    assert reactivated.status == "in_progress"
    assert reactivated.expires_at == NOW + timedelta(days=7)


async def test_complete_session_sets_percentage_and_timestamp(store):
    row = await store.create_session("user_a", now=NOW)

    done = await store.complete_session(row.id, now=NOW)

    assert done.status == "completed"
    assert done.completion_percentage == 100
    assert done.completed_at == NOW


# ============================================================================
# Progress rows
# ============================================================================


async def test_steps_listed_in_order(store, tracker):
    row = await store.create_session("user_a", now=NOW)
    await tracker.create_step(row.id, 2, "company", {"company_name": "Acme"})
    await tracker.create_step(row.id, 1, "welcome", {})

    _, progress = await store.get_session_with_progress(row.id)

    assert [p.step_number for p in progress] == [1, 2]


async def test_completion_time_set_on_first_completion(store, tracker):
    row = await store.create_session("user_a", now=NOW)
    await tracker.create_step(row.id, 1, "welcome", {}, now=NOW)

    step = await tracker.update_step(row.id, 1, {"completed": True}, now=NOW + timedelta(minutes=3))

    assert step.completed is True
    assert step.completion_time == NOW + timedelta(minutes=3)


async def test_identical_resubmission_keeps_completion(store, tracker):
    row = await store.create_session("user_a", now=NOW)
    data = {"full_name": "Ana"}
    first = await tracker.record_submission(row.id, 1, "welcome", data, True, False, None, now=NOW)
    completed_at = first.completion_time

    second = await tracker.record_submission(
        row.id, 1, "welcome", data, True, False, None, now=NOW + timedelta(hours=1)
    )

    assert second.id == first.id
    assert second.completed is True
    assert second.completion_time == completed_at


async def test_uncompleting_clears_completion_time(store, tracker):
    row = await store.create_session("user_a", now=NOW)
    await tracker.create_step(row.id, 1, "welcome", {}, completed=True, now=NOW)

    step = await tracker.update_step(row.id, 1, {"completed": False})

    assert step.completion_time is None


async def test_update_missing_step_raises(store, tracker):
    row = await store.create_session("user_a", now=NOW)

    with pytest.raises(NotFoundError):
        await tracker.update_step(row.id, 3, {"completed": True})


async def test_update_step_rejects_stale_version(store, tracker):
    row = await store.create_session("user_a", now=NOW)
    await tracker.create_step(row.id, 1, "welcome", {})
    await tracker.update_step(row.id, 1, {"step_data": {"full_name": "Ana"}})

    with pytest.raises(ConflictError):
        await tracker.update_step(row.id, 1, {"completed": True}, expected_version=1)
