"""API-specific test fixtures."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakeredis import FakeAsyncRedis
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from stratix.core.exceptions import StratixError, UpstreamUnavailableError
from stratix.services.ai_quota import AIUsageLimiter
from stratix.services.ai_service import SmartCompletionService


@pytest.fixture
def offline_ai() -> SmartCompletionService:
    """SmartCompletionService whose provider is always down."""
    text_service = MagicMock()
    text_service.generate_text = AsyncMock(side_effect=UpstreamUnavailableError("AI provider is not configured"))
    return SmartCompletionService(text_service=text_service)


@pytest.fixture
def quota_limits() -> dict[str, int]:
    return {"analysis": 1, "validation": 5, "completion": 5}


@pytest.fixture
def api_client(engine, database_url, offline_ai, quota_limits):
    """FastAPI test client with test database.

    Initializes the global database via init_db inside the TestClient's
    own event loop so the service's RLS units of work can use get_engine().
    The engine fixture ensures tables exist before this runs.
    """
    from stratix.api.routes import api_router
    from stratix.api.routes.onboarding import get_ai_limiter, get_smart_completion
    from stratix.db import close_db, init_db
    from stratix.main import generic_exception_handler, http_exception_handler, stratix_exception_handler

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        import stratix.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(database_url, create_tables=False)
        yield
        await close_db()

    app = FastAPI(title="StratixV2 Onboarding - Test Client", lifespan=test_lifespan)

    app.exception_handler(StratixError)(stratix_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    fake_redis = FakeAsyncRedis(decode_responses=True)
    app.dependency_overrides[get_smart_completion] = lambda: offline_ai
    app.dependency_overrides[get_ai_limiter] = lambda: AIUsageLimiter(fake_redis, limits=quota_limits)

    with TestClient(app) as client:
        yield client
