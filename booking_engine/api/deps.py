"""API Dependencies"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from booking_engine.database import get_db  # noqa: F401
from booking_engine.core.exceptions import PermissionDeniedError
from booking_engine.core.security import decode_token
from booking_engine.models.booking import Booking
from booking_engine.models.enums import ActorRole

# Security scheme for bearer token
security = HTTPBearer()


@dataclass(frozen=True)
class Actor:
    """Caller identity taken from the bearer token."""
    id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """
    Get the calling actor from the JWT token.

    Raises:
        HTTPException: If the token is invalid or carries no usable identity
    """
    payload = decode_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Could not validate credentials")

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    sub: Optional[str] = payload.get("sub")
    if not sub:
        raise _unauthorized("Could not validate credentials")
    try:
        actor_id = UUID(sub)
    except ValueError:
        raise _unauthorized("Invalid actor ID")

    try:
        role = ActorRole(payload.get("role"))
    except ValueError:
        raise _unauthorized("Invalid role")

    return Actor(id=actor_id, role=role)


def _require_role(*roles: ActorRole):
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return actor
    return dependency


require_admin = _require_role(ActorRole.ADMIN)
require_teacher = _require_role(ActorRole.TEACHER, ActorRole.ADMIN)
require_student = _require_role(ActorRole.STUDENT)


def assert_booking_participant(actor: Actor, booking: Booking) -> None:
    """Only the booking's student, its teacher, or an admin may act on it."""
    if actor.is_admin or actor.id in (booking.student_id, booking.teacher_id):
        return
    raise PermissionDeniedError("Not a participant of this booking")


def assert_teacher_of(actor: Actor, teacher_id: UUID) -> None:
    if actor.is_admin or actor.id == teacher_id:
        return
    raise PermissionDeniedError("Only the lesson's teacher can do this")
