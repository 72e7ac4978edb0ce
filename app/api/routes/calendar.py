import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_gateway, get_session
from app.api.schemas.calendar import ConnectCalendarRequest, ConnectCalendarResponse
from app.core.config import settings
from app.core.exceptions import SchedulerError
from app.models.calendar_connection import CalendarConnectionPublic
from app.models.user import User
from app.services.calendar_connection_service import (
    complete_connection,
    get_connect_url,
    get_connection_for_user,
)
from app.services.calendar_gateway import CalendarGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _admin_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.admin_calendar_url}?{urlencode(params)}", status_code=302)


@router.get("", response_model=CalendarConnectionPublic)
async def my_connection(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> CalendarConnectionPublic:
    connection = await get_connection_for_user(session, current_user.id)
    if not connection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not connected")
    return CalendarConnectionPublic.model_validate(connection, from_attributes=True)


@router.post("/connect", response_model=ConnectCalendarResponse)
async def connect(
    body: ConnectCalendarRequest,
    gateway: CalendarGateway = Depends(get_gateway),
    current_user: User = Depends(get_current_user),
) -> ConnectCalendarResponse:
    if not settings.calendar_oauth_enabled:
        logger.warning("Calendar connect requested but AURINKO_CLIENT_ID/SECRET are not set")
    return ConnectCalendarResponse(auth_url=get_connect_url(gateway, current_user, body.provider))


@router.get("/callback")
async def callback(
    code: str | None = Query(None),
    state: str | None = Query(None),  # the user id from the connect step
    error: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
    gateway: CalendarGateway = Depends(get_gateway),
) -> RedirectResponse:
    if error:
        return _admin_redirect(error=error)
    if not code or not state or not state.isdigit():
        return _admin_redirect(error="missing_params")
    try:
        await complete_connection(session, gateway, int(state), code)
    except SchedulerError as e:
        logger.warning("Calendar callback failed for user %s: %s", state, e)
        await session.rollback()
        return _admin_redirect(error="connection_failed")
    return _admin_redirect(success="true")
