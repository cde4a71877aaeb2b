"""
Authentication and Authorization for the studio service.

Supports:
- JWT session tokens issued by the identity service (HS256, shared secret)
- Bearer auth for HTTP endpoints
- Token auth for the real-time WebSocket, checked before the socket is accepted
- Role-based authorization dependencies
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from studio_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


class AuthError(Exception):
    """Raised when a token is missing, malformed, expired or has bad claims."""


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity carried by a validated token."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT for a tenant user."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> AuthenticatedUser:
    """Decode and verify a JWT. Raises AuthError on any failure."""
    if not token:
        raise AuthError("Authentication required")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid or expired session") from exc

    try:
        return AuthenticatedUser(
            user_id=uuid.UUID(payload["sub"]),
            tenant_id=uuid.UUID(payload["tenant_id"]),
            role=payload.get("role", Role.MEMBER.value),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise AuthError("Token is missing identity claims") from exc


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_authenticated_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """Main authentication dependency for HTTP endpoints."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return decode_jwt(credentials.credentials)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc))


def authenticate_websocket(websocket: WebSocket, token: Optional[str]) -> AuthenticatedUser:
    """
    Resolve the identity of a WebSocket handshake.

    The token comes from the ``token`` query parameter or an
    ``Authorization: Bearer`` header. Raises AuthError; the caller must close
    the socket without accepting it.
    """
    if not token:
        header = websocket.headers.get("authorization", "")
        if header.lower().startswith("bearer "):
            token = header[7:].strip()
    return decode_jwt(token or "")


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_member(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Any authenticated tenant user can access this endpoint."""
    return auth


async def require_admin(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Requires the tenant admin role."""
    if not auth.is_admin:
        log.info("auth.admin_required", user_id=str(auth.user_id), role=auth.role)
        raise HTTPException(status_code=403, detail="Administrator access required")
    return auth
