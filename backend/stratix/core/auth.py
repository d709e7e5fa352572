"""Stack Auth (Neon Auth) access-token authentication for FastAPI."""

from dataclasses import dataclass
from functools import lru_cache

import jwt as pyjwt
import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from stratix.core.config import get_settings

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

STACK_TOKEN_HEADER = "x-stack-access-token"
ALLOWED_ALGORITHMS = ["ES256", "RS256"]


def _project_base_url() -> str:
    settings = get_settings()
    if not settings.stack_project_id:
        raise ValueError("STACK_PROJECT_ID is not configured")
    return f"{settings.stack_api_url.rstrip('/')}/api/v1/projects/{settings.stack_project_id}"


def expected_issuer() -> str:
    return _project_base_url()


@lru_cache
def get_jwks_client() -> PyJWKClient:
    """Cached JWKS client for the configured Stack project."""
    return PyJWKClient(f"{_project_base_url()}/.well-known/jwks.json", cache_keys=True, lifespan=300)


@dataclass(frozen=True)
class AuthUser:
    """Authenticated principal. ``id`` is the RLS principal and session owner."""

    id: str
    email: str | None
    email_verified: bool
    display_name: str | None
    claims: dict


def _allowed_audiences() -> list[str]:
    settings = get_settings()
    return [settings.stack_project_id, *settings.stack_allowed_audiences]


def decode_access_token(token: str) -> AuthUser:
    """Verify and decode a Stack Auth access token.

    Raises ``HTTPException(401)`` on any validation failure.
    """
    try:
        issuer = expected_issuer()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail="Authentication is misconfigured") from exc

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        payload = pyjwt.decode(
            token,
            signing_key.key,
            algorithms=ALLOWED_ALGORITHMS,
            audience=_allowed_audiences(),
            issuer=issuer,
            options={"require": ["sub", "exp", "iat", "iss"]},
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.InvalidAudienceError:
        raise HTTPException(status_code=401, detail="Unauthorized audience (aud mismatch)")
    except pyjwt.InvalidIssuerError:
        raise HTTPException(status_code=401, detail="Invalid issuer (iss mismatch)")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.PyJWKClientError as exc:
        logger.warning("jwks_lookup_failed", error=str(exc))
        raise HTTPException(status_code=401, detail="Unable to verify token signature")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    return AuthUser(
        id=sub,
        email=payload.get("email"),
        email_verified=bool(payload.get("email_verified", False)),
        display_name=payload.get("name"),
        claims=payload,
    )


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthUser:
    """FastAPI dependency returning the authenticated user.

    Accepts ``Authorization: Bearer <token>`` or the ``x-stack-access-token``
    header sent by the Stack client SDK.

    Usage::

        @router.get("/protected")
        async def protected(user: AuthUser = Depends(require_auth)):
            ...
    """
    token = credentials.credentials if credentials else request.headers.get(STACK_TOKEN_HEADER)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    user = decode_access_token(token)

    # Error handlers log this alongside the debug id
    request.state.user_id = user.id
    return user
