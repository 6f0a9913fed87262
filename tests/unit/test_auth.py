from datetime import datetime, timedelta, timezone

import jwt
import pytest

from core.auth import JWTTokenProvider, TokenProvider, get_token_provider, hash_password, verify_password
from core.config import _reset_config
from core.errors import AuthenticationError, ErrorCode


@pytest.fixture(autouse=True)
def _clear_config_cache():
    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def provider():
    return JWTTokenProvider(secret_key="test-secret", expires_in=timedelta(hours=1))


def test_token_provider_is_abstract():
    with pytest.raises(TypeError):
        TokenProvider()  # type: ignore[abstract]


def test_issue_and_verify_token(provider):
    token = provider.issue_token("user-123")
    claims = provider.verify_token(token)
    assert claims.user_id == "user-123"
    assert claims.expires_at - claims.issued_at == timedelta(hours=1)


def test_token_payload_shape(provider):
    token = provider.issue_token("user-123")
    payload = jwt.decode(token, "test-secret", algorithms=["HS256"])
    assert set(payload) == {"userId", "iat", "exp"}


def test_expired_token_is_distinguishable(provider):
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = provider.issue_token("user-123", now=issued)

    with pytest.raises(AuthenticationError) as exc_info:
        provider.verify_token(token)
    assert exc_info.value.message == "Access denied. Token has expired."
    assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED


def test_token_signed_with_other_secret_is_invalid(provider):
    token = JWTTokenProvider(secret_key="other-secret").issue_token("user-123")
    with pytest.raises(AuthenticationError) as exc_info:
        provider.verify_token(token)
    assert exc_info.value.code == ErrorCode.INVALID_TOKEN


def test_garbage_token_is_invalid(provider):
    with pytest.raises(AuthenticationError, match="Invalid token"):
        provider.verify_token("not-a-jwt")


def test_token_without_user_id_is_invalid(provider):
    now = datetime.now(timezone.utc)
    token = jwt.encode({"sub": "x", "iat": now, "exp": now + timedelta(hours=1)}, "test-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError, match="Invalid token"):
        provider.verify_token(token)


def test_get_token_provider_requires_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "")
    monkeypatch.delenv("JWT_SECRET_ARN", raising=False)
    with pytest.raises(ValueError, match="JWT_SECRET not configured"):
        get_token_provider()


def test_get_token_provider_returns_jwt_provider(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    assert isinstance(get_token_provider(), JWTTokenProvider)


def test_password_hash_round_trip():
    hashed = hash_password("Secret123", rounds=4)
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("Secret124", hashed)


def test_verify_password_against_malformed_hash():
    assert not verify_password("Secret123", "not-a-bcrypt-hash")
