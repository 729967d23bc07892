import jwt
import pytest
from fastapi import HTTPException

from src.surveychat.security.auth import JwtConfig, User, create_access_token, decode_token


def test_token_round_trip_carries_user_id():
    token = create_access_token(User(id="user-42", email="pat@example.com", role="researcher"))
    user = decode_token(token)
    assert user.id == "user-42"
    assert user.email == "pat@example.com"
    assert user.role == "researcher"


def test_wrong_secret_is_rejected():
    token = create_access_token(User(id="u"), JwtConfig(secret="other-secret"))
    with pytest.raises(HTTPException) as exc:
        decode_token(token)
    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid authorization"


def test_expired_token_is_rejected():
    token = create_access_token(User(id="u"), JwtConfig(secret="dev-secret-change-me", expires_min=-1))
    with pytest.raises(HTTPException):
        decode_token(token)


def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "x@example.com"}, "dev-secret-change-me", algorithm="HS256")
    with pytest.raises(HTTPException):
        decode_token(token)


def test_audience_checked_when_configured(monkeypatch):
    monkeypatch.setenv("JWT_AUDIENCE", "authenticated")
    cfg = JwtConfig.from_env()
    assert cfg.audience == "authenticated"
    good = create_access_token(User(id="u"), cfg)
    assert decode_token(good).id == "u"

    bad = create_access_token(User(id="u"), JwtConfig(secret=cfg.secret, audience="someone-else"))
    with pytest.raises(HTTPException):
        decode_token(bad)


def test_jwt_settings_come_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "env-secret-" + "k" * 64)
    monkeypatch.setenv("JWT_ALGORITHM", "HS512")
    monkeypatch.setenv("JWT_EXPIRES_MIN", "5")
    cfg = JwtConfig.from_env()
    assert (cfg.secret, cfg.algorithm, cfg.audience, cfg.expires_min) == ("env-secret-" + "k" * 64, "HS512", None, 5)

    token = create_access_token(User(id="env-user"))
    assert jwt.get_unverified_header(token)["alg"] == "HS512"
    assert decode_token(token).id == "env-user"
