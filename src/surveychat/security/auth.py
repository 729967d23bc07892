from __future__ import annotations

"""Authentication: bearer JWT verification.

Identity is issued elsewhere; this backend only verifies HS256 tokens and
reads the user id from ``sub``. ``create_access_token`` exists for local runs
and tests.

Env vars:
- JWT_SECRET (required in prod; default for dev)
- JWT_ALGORITHM (default HS256)
- JWT_AUDIENCE (optional; checked when set)
- JWT_EXPIRES_MIN (default 60)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import logging
import os

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, ValidationError


logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class JwtConfig:
    secret: str
    algorithm: str = "HS256"
    audience: Optional[str] = None
    expires_min: int = 60

    @staticmethod
    def from_env() -> "JwtConfig":
        return JwtConfig(
            secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            audience=os.getenv("JWT_AUDIENCE") or None,
            expires_min=int(os.getenv("JWT_EXPIRES_MIN", "60")),
        )


class User(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    role: Optional[str] = None


def create_access_token(user: User, cfg: Optional[JwtConfig] = None) -> str:
    cfg = cfg or JwtConfig.from_env()
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=cfg.expires_min)
    payload = {
        "sub": user.id,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if user.email:
        payload["email"] = user.email
    if user.role:
        payload["role"] = user.role
    if cfg.audience:
        payload["aud"] = cfg.audience
    return jwt.encode(payload, cfg.secret, algorithm=cfg.algorithm)


def decode_token(token: str, cfg: Optional[JwtConfig] = None) -> User:
    cfg = cfg or JwtConfig.from_env()
    try:
        data = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.algorithm],
            audience=cfg.audience,
            options={"verify_aud": cfg.audience is not None},
        )
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc.__class__.__name__)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization")
    sub = data.get("sub")
    if not isinstance(sub, str) or not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization")
    try:
        return User(id=sub, email=data.get("email") or None, role=data.get("role"))
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization")


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> User:
    if creds is None or not creds.scheme or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization required")
    return decode_token(creds.credentials)
