"""Verification of bearer tokens issued by the hosted auth provider."""
from dataclasses import dataclass
from typing import Optional
import logging
import time
from uuid import UUID
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .config import settings
from .domain_errors import DomainError

logger = logging.getLogger(__name__)

# Bearer token scheme; missing credentials are reported through the error envelope.
security = HTTPBearer(auto_error=False)

SERVICE_ROLE = "service_role"
SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation, as recorded in status history."""

    label: str
    user_id: Optional[UUID] = None
    role: Optional[str] = None

    @property
    def is_system(self) -> bool:
        return self.user_id is None


SYSTEM = Actor(label=SYSTEM_ACTOR, role=SERVICE_ROLE)


def _unauthorized(message: str = "Could not validate credentials") -> DomainError:
    return DomainError(code="UNAUTHORIZED", http_status=401, message=message)


def decode_token(token: str) -> dict:
    """Decode and verify a hosted-auth JWT (signature, audience, expiry)."""
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options={"verify_exp": False, "verify_aud": False},
        )
    except JWTError:
        raise _unauthorized()

    now = int(time.time())
    exp = payload.get("exp")
    if exp is None:
        raise _unauthorized()
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        raise _unauthorized()
    if now > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise _unauthorized("Token expired")

    role = payload.get("role")
    # Service tokens carry no audience claim.
    if role != SERVICE_ROLE and payload.get("aud") != settings.JWT_AUDIENCE:
        raise _unauthorized()
    return payload


def actor_from_payload(payload: dict) -> Actor:
    role = payload.get("role")
    if role == SERVICE_ROLE:
        return SYSTEM

    sub = payload.get("sub")
    if not sub:
        raise _unauthorized()
    try:
        user_id = UUID(str(sub))
    except ValueError:
        raise _unauthorized()
    return Actor(label=str(user_id), user_id=user_id, role=role)


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """Resolve the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Missing bearer token")
    payload = decode_token(credentials.credentials)
    actor = actor_from_payload(payload)
    logger.debug("Authenticated actor %s", actor.label)
    return actor
