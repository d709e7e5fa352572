class StratixError(Exception):
    """Base exception for the onboarding backend."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or ""
        super().__init__(self.message)


class InvalidArgumentError(StratixError):
    """Raised for empty identifiers, out-of-range steps or malformed payloads."""

    status_code = 400
    code = "invalid_argument"


class NotFoundError(StratixError):
    """Raised when a session or progress row does not exist."""

    status_code = 404
    code = "not_found"


class ForbiddenError(StratixError):
    """Raised when a session exists but belongs to another user."""

    status_code = 403
    code = "forbidden"


class ConflictError(StratixError):
    """Raised when a write targets a stale row version."""

    status_code = 409
    code = "version_conflict"

    def __init__(self, entity: str, expected: int | None, actual: int | None):
        self.entity = entity
        self.expected = expected
        self.actual = actual
        super().__init__(f"Stale {entity} version: expected {expected}, current is {actual}")


class RateLimitExceededError(StratixError):
    """Raised when a user exhausts an hourly AI quota."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, operation: str, limit: int, reset_at: int):
        self.operation = operation
        self.limit = limit
        self.reset_at = reset_at
        super().__init__(f"AI {operation} limit reached ({limit}/hour). Try again later.")


class UpstreamUnavailableError(StratixError):
    """Raised when an identity, email or AI provider call fails."""

    status_code = 503
    code = "upstream_unavailable"


class StorageError(StratixError):
    """Raised when the database fails underneath a repository call."""

    status_code = 500
    code = "storage_error"
