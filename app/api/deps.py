from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt.exceptions import PyJWTError
from pydantic import ValidationError

from app.core.appointment_rules import BookingRules, default_rules
from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.redis import redis_client
from app.db.models import UserRole
from app.schemas.auth import Actor

# Tokens are issued by the identity service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        role: str = payload.get("role")
        if user_id is None or role is None:
            raise UnauthorizedError()
        actor = Actor(id=user_id, role=role)
    except (PyJWTError, ValidationError):
        raise UnauthorizedError()

    # Logged-out or expired sessions are removed from the store
    if await redis_client.get_token(token) is None:
        raise UnauthorizedError("Session expired or revoked")
    return actor

def require_roles(*roles: UserRole):
    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError()
        return actor
    return checker

def get_clock() -> Clock:
    return system_clock

def get_booking_rules() -> BookingRules:
    return default_rules
