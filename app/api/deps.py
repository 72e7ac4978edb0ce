from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_session
from app.core.exceptions import AssistantError
from app.core.security import decode_access_token
from app.models.user import User, UserRole
from app.services.assistant_client import AssistantClient, get_assistant_client
from app.services.calendar_gateway import CalendarGateway, get_calendar_gateway

security = HTTPBearer(auto_error=False)

STAFF_ROLES = {UserRole.EXECUTIVE_SECRETARY.value, UserRole.BISHOPRIC.value}


def get_gateway() -> CalendarGateway:
    return get_calendar_gateway()


def get_assistant() -> AssistantClient | None:
    """None when no API key is configured; the chat turn then degrades to an apology."""
    try:
        return get_assistant_client()
    except AssistantError:
        return None


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        uid = int(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    result = await session.execute(select(User).where(User.id == uid))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_staff_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in STAFF_ROLES or current_user.ward_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user


async def get_secretary(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.EXECUTIVE_SECRETARY.value or current_user.ward_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user


def ensure_same_ward(user: User, ward_id: int) -> None:
    if user.ward_id != ward_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this ward")
