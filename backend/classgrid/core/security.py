from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from classgrid.core.config import get_settings


@dataclass(frozen=True)
class Actor:
    """Identity supplied by the authorization layer for audited operations."""

    id: str
    name: str
    role: str = "admin"


SYSTEM_ACTOR = Actor(id="system", name="System (Auto-Regeneration)", role="system")


def create_access_token(*, subject: str, name: str, role: str) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "name": name,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_expire_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def actor_from_token(token: str) -> Actor:
    payload = decode_token(token)
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return Actor(id=str(subject), name=str(payload.get("name") or subject), role=str(payload.get("role") or ""))
