"""
devio.api.deps — FastAPI dependency injection
==============================================

The token is issued by the platform's auth service; this layer only
verifies it to learn the acting user id (``sub``) and the ``is_admin``
flag.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from devio.config import DevioConfig, load_config
from devio.database.engine import create_db_engine
from devio.services import dispatch

_WEAK_SECRETS = frozenset({
    "devio-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "It must match the secret the platform's auth service signs with."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> DevioConfig:
    return load_config()


def get_dispatcher() -> dispatch.SideEffectDispatcher:
    return dispatch.get_dispatcher()


def _decode_bearer(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if "sub" not in payload:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer token and return its payload. Raises 401 if invalid."""
    return _decode_bearer(authorization)


def get_current_user_id(user: Annotated[dict, Depends(get_current_user)]) -> int:
    try:
        return int(user["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_admin(user: Annotated[dict, Depends(get_current_user)]) -> dict:
    """Validated payload of an admin token. Raises 403 for non-admins."""
    if not user.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return user
