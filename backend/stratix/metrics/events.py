"""CloudWatch emission for onboarding business events.

Fire-and-forget: emission failures are logged and swallowed, the caller is
never blocked or failed. boto3 is synchronous, so puts run on a small thread
pool off the event loop.

Counters here are approximate telemetry. Session state lives in Postgres.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from stratix.core.config import get_settings

logger = structlog.get_logger(__name__)

SESSION_STARTED = "onboarding_session_started"
STEP_SUBMITTED = "onboarding_step_submitted"
SESSION_COMPLETED = "onboarding_session_completed"
SESSION_ABANDONED = "onboarding_session_abandoned"
SESSION_REACTIVATED = "onboarding_session_reactivated"

EVENTS = frozenset({SESSION_STARTED, STEP_SUBMITTED, SESSION_COMPLETED, SESSION_ABANDONED, SESSION_REACTIVATED})

_cw_client = None
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cw-onboarding")


def _get_client():
    global _cw_client
    if _cw_client is None:
        _cw_client = boto3.client("cloudwatch", region_name=get_settings().aws_region)
    return _cw_client


def _metric_datum(event_name: str, step_number: int | None) -> dict:
    dimensions = [{"Name": "Event", "Value": event_name}]
    if step_number is not None:
        dimensions.append({"Name": "Step", "Value": str(step_number)})
    return {
        "MetricName": "EventCount",
        "Dimensions": dimensions,
        "Value": 1.0,
        "Unit": "Count",
        "Timestamp": datetime.now(UTC),
    }


def _put_onboarding_event(namespace: str, event_name: str, user_id: str | None, step_number: int | None) -> None:
    """Synchronous put_metric_data. Runs in the thread pool."""
    try:
        _get_client().put_metric_data(Namespace=namespace, MetricData=[_metric_datum(event_name, step_number)])
    except (BotoCoreError, ClientError) as e:
        logger.warning("onboarding_event_emit_failed", error=str(e), event=event_name, user_id=user_id)


async def emit_onboarding_event(event_name: str, user_id: str | None = None, step_number: int | None = None) -> None:
    """Record an onboarding event. Non-blocking, never raises.

    User ids are logged but not sent as a metric dimension to keep
    CloudWatch cardinality bounded.
    """
    logger.info("onboarding_event", event=event_name, user_id=user_id, step_number=step_number)

    settings = get_settings()
    if not settings.metrics_enabled:
        return

    loop = asyncio.get_running_loop()
    loop.run_in_executor(
        _executor, _put_onboarding_event, settings.metrics_namespace, event_name, user_id, step_number
    )
