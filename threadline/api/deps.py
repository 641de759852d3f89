"""
threadline.api.deps — FastAPI dependency injection
====================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from threadline.config import ThreadlineConfig, load_config
from threadline.database.engine import create_db_engine
from threadline.engine.authorization import Viewer
from threadline.services.viewer_service import load_viewer

_WEAK_SECRETS = frozenset({
    "threadline-dev-secret-change-me",
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
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
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
def get_config() -> ThreadlineConfig:
    return load_config(os.getenv("THREADLINE_CONFIG", "config.yaml"))


def get_current_viewer(
    engine: Annotated[Engine, Depends(get_engine)],
    authorization: Annotated[str | None, Header()] = None,
) -> Viewer | None:
    """Resolve the bearer token to a :class:`Viewer`.

    No header → anonymous (``None``).  A header that is present but invalid,
    or that names a user who no longer exists, is a 401.
    """
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Malformed token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        user_id = int(payload["sub"])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    with Session(engine) as session:
        viewer = load_viewer(session, user_id)
    if viewer is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unknown user")
    return viewer

def require_viewer(
    viewer: Annotated[Viewer | None, Depends(get_current_viewer)],
) -> Viewer:
    """Like :func:`get_current_viewer` but anonymous requests get a 401."""
    if viewer is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return viewer

def require_admin(viewer: Annotated[Viewer, Depends(require_viewer)]) -> Viewer:
    if not viewer.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return viewer
