"""Tests for Stack Auth access-token verification."""

import time
from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import jwt as pyjwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from stratix.core.auth import STACK_TOKEN_HEADER, decode_access_token, require_auth

pytestmark = pytest.mark.unit

# ---------------------------------------------------------------------------
# RSA keypair generated once for entire test module
# ---------------------------------------------------------------------------
_private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
_public_key = _private_key.public_key()

_private_pem = _private_key.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
)

_PROJECT_ID = "proj-test-123"
_API_URL = "https://api.stack-auth.test"
_ISSUER = f"{_API_URL}/api/v1/projects/{_PROJECT_ID}"


def _sign_jwt(payload: dict, kid: str = "test-kid") -> str:
    return pyjwt.encode(payload, _private_pem, algorithm="RS256", headers={"kid": kid})


def _claims(**overrides) -> dict:
    now = int(time.time())
    claims = {
        "sub": "user_abc123",
        "iss": _ISSUER,
        "aud": _PROJECT_ID,
        "iat": now,
        "exp": now + 300,
        "email": "ana@example.com",
        "email_verified": True,
        "name": "Ana",
    }
    claims.update(overrides)
    return claims


@dataclass
class _FakeSigningKey:
    key: object


def _mock_jwks_client():
    client = MagicMock()
    client.get_signing_key_from_jwt.return_value = _FakeSigningKey(key=_public_key)
    return client


def _mock_settings(project_id: str = _PROJECT_ID):
    s = MagicMock()
    s.stack_project_id = project_id
    s.stack_api_url = _API_URL
    s.stack_allowed_audiences = ["internal-tools"]
    return s


@pytest.fixture(autouse=True)
def _auth_env():
    with (
        patch("stratix.core.auth.get_settings", return_value=_mock_settings()),
        patch("stratix.core.auth.get_jwks_client", return_value=_mock_jwks_client()),
    ):
        yield


class TestDecodeAccessToken:
    def test_valid_token(self):
        user = decode_access_token(_sign_jwt(_claims()))

        assert user.id == "user_abc123"
        assert user.email == "ana@example.com"
        assert user.email_verified is True
        assert user.display_name == "Ana"

    def test_extra_audience_is_accepted(self):
        user = decode_access_token(_sign_jwt(_claims(aud="internal-tools")))

        assert user.id == "user_abc123"

    def test_expired_token(self):
        token = _sign_jwt(_claims(exp=int(time.time()) - 60))

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_wrong_audience(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(_sign_jwt(_claims(aud="another-project")))

        assert exc_info.value.status_code == 401
        assert "audience" in exc_info.value.detail

    def test_wrong_issuer(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(_sign_jwt(_claims(iss="https://evil.example")))

        assert exc_info.value.status_code == 401
        assert "issuer" in exc_info.value.detail

    def test_missing_sub(self):
        claims = _claims()
        del claims["sub"]

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(_sign_jwt(claims))

        assert exc_info.value.status_code == 401

    def test_garbage_token(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token("not.a.jwt")

        assert exc_info.value.status_code == 401

    def test_unconfigured_project_is_a_server_error(self):
        with patch("stratix.core.auth.get_settings", return_value=_mock_settings(project_id="")):
            with pytest.raises(HTTPException) as exc_info:
                decode_access_token(_sign_jwt(_claims()))

        assert exc_info.value.status_code == 500


class TestRequireAuth:
    async def test_bearer_credentials(self):
        request = MagicMock()
        request.headers = {}
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_sign_jwt(_claims()))

        user = await require_auth(request, credentials)

        assert user.id == "user_abc123"
        assert request.state.user_id == "user_abc123"

    async def test_stack_header(self):
        request = MagicMock()
        request.headers = {STACK_TOKEN_HEADER: _sign_jwt(_claims(sub="user_xyz"))}

        user = await require_auth(request, None)

        assert user.id == "user_xyz"

    async def test_missing_token(self):
        request = MagicMock()
        request.headers = {}

        with pytest.raises(HTTPException) as exc_info:
            await require_auth(request, None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing authorization header"
