"""X-Request-ID correlation for every request and log line."""

import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"


def _is_valid_request_id(value: str) -> bool:
    # Client-supplied ids are echoed into logs, keep them short and printable
    return 0 < len(value) <= 128 and value.isprintable()


def setup_correlation_middleware(app: FastAPI) -> None:
    """Echo a client X-Request-ID back, or generate a UUID4 when absent or unusable."""
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=_is_valid_request_id,
        update_request_header=True,
    )


def get_correlation_id() -> str | None:
    """Current request's correlation id, or None outside a request."""
    return correlation_id.get()
