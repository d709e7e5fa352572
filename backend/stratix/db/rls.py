"""Row-scoped data access.

Every query issued for one user's request runs on a single pooled connection
whose ``app.current_user_id`` setting holds that user's id. The Row Level
Security policies in the onboarding migration read that setting; this module
only binds it.

Usage::

    async def load(session: AsyncSession) -> OnboardingSession | None:
        return await OnboardingSessionStore(session).get_session(session_id)

    onboarding = await with_user_context(user.id, load)
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from stratix.core.exceptions import ConflictError, InvalidArgumentError, StorageError, StratixError
from stratix.db.base import get_engine

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RLS_USER_SETTING = "app.current_user_id"

_SET_CONFIG = text("SELECT set_config(:name, :value, false)")


def _require_user_id(user_id: str | None) -> str:
    if not user_id or not user_id.strip():
        raise InvalidArgumentError("User ID is required for RLS context")
    return user_id


async def set_user_context(user_id: str | None, connection: AsyncConnection | None) -> None:
    """Bind ``app.current_user_id`` on a connection for its whole lifetime.

    The setting is session-scoped (``is_local=false``), so it is committed
    immediately: a SET issued inside a transaction that later rolls back
    would otherwise be undone with it.

    Raises:
        InvalidArgumentError: If user_id is empty or no connection is given
    """
    _require_user_id(user_id)
    if connection is None:
        raise InvalidArgumentError("A database connection is required for setting RLS context")

    await connection.execute(_SET_CONFIG, {"name": RLS_USER_SETTING, "value": user_id})
    await connection.commit()


async def _clear_user_context(connection: AsyncConnection) -> None:
    await connection.rollback()
    await connection.execute(_SET_CONFIG, {"name": RLS_USER_SETTING, "value": ""})
    await connection.commit()


def _open_session(connection: AsyncConnection) -> AsyncSession:
    return AsyncSession(bind=connection, expire_on_commit=False)


async def with_user_context(
    user_id: str | None,
    callback: Callable[[AsyncSession], Awaitable[T]],
    engine: AsyncEngine | None = None,
) -> T:
    """Run ``callback`` inside one RLS-scoped unit of work.

    Acquires a connection, binds the user context, hands the callback an
    AsyncSession bound to that connection and commits when it returns.
    The connection always goes back to the pool, with the user context
    cleared first so the next borrower never inherits it.

    Domain errors (StratixError) propagate unchanged after rollback.
    Database errors are re-raised as StorageError. Nothing is retried here.
    """
    _require_user_id(user_id)
    engine = engine or get_engine()

    async with engine.connect() as connection:
        try:
            await set_user_context(user_id, connection)

            session = _open_session(connection)
            try:
                result = await callback(session)
                await session.commit()
                return result
            except BaseException:
                await session.rollback()
                raise
            finally:
                await session.close()
        except StratixError:
            raise
        except StaleDataError as e:
            raise ConflictError("row", None, None) from e
        except SQLAlchemyError as e:
            logger.error("rls_unit_of_work_failed", user_id=user_id, error=str(e), error_type=type(e).__name__)
            raise StorageError("Database operation failed") from e
        finally:
            try:
                await _clear_user_context(connection)
            except SQLAlchemyError as e:
                # Never hand a connection that may still carry this user back to the pool
                logger.warning("rls_context_reset_failed", user_id=user_id, error=str(e))
                await connection.invalidate()
