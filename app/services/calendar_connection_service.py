import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, UpstreamCalendarError, ValidationError
from app.core.timeutil import utc_naive_now
from app.models.calendar_connection import CalendarConnection, CalendarProvider
from app.models.user import User
from app.services.calendar_gateway import AURINKO_PROVIDERS, CalendarAccount, CalendarGateway

logger = logging.getLogger(__name__)


def provider_from_service_type(service_type: str) -> str:
    return CalendarProvider.GOOGLE.value if service_type == "Google" else CalendarProvider.MICROSOFT.value


async def get_connection_for_user(session: AsyncSession, user_id: int) -> CalendarConnection | None:
    result = await session.execute(
        select(CalendarConnection).where(CalendarConnection.user_id == user_id)
    )
    return result.scalar_one_or_none()


def get_connect_url(gateway: CalendarGateway, user: User, provider: str) -> str:
    if provider not in AURINKO_PROVIDERS:
        raise ValidationError(f"Invalid provider {provider!r}; expected one of {', '.join(AURINKO_PROVIDERS)}")
    return gateway.get_auth_url(user.id, provider)


async def save_connection(
    session: AsyncSession, user_id: int, account: CalendarAccount
) -> CalendarConnection:
    """Create or refresh the user's single calendar connection."""
    if not account.id or not account.access_token:
        raise UpstreamCalendarError("Calendar account exchange returned no account or token")
    connection = await get_connection_for_user(session, user_id)
    if connection is None:
        connection = CalendarConnection(
            user_id=user_id,
            provider=provider_from_service_type(account.provider),
            remote_account_id=account.id,
            email=account.email,
            access_token=account.access_token,
        )
    else:
        connection.provider = provider_from_service_type(account.provider)
        connection.remote_account_id = account.id
        connection.email = account.email
        connection.access_token = account.access_token
        connection.is_active = True
        connection.last_synced_at = utc_naive_now()
    session.add(connection)
    await session.flush()
    await session.refresh(connection)
    return connection


async def complete_connection(
    session: AsyncSession, gateway: CalendarGateway, user_id: int, code: str
) -> CalendarConnection:
    """OAuth callback: swap the code for an account and store it for the user."""
    result = await session.execute(select(User).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError(f"User {user_id} not found")
    account = await gateway.exchange_code(code)
    if not account.access_token:
        raise UpstreamCalendarError("Calendar account exchange returned no token")
    # Touch the account once so a broken grant fails here rather than at booking time
    await gateway.get_primary_calendar(account.access_token)
    connection = await save_connection(session, user_id, account)
    logger.info("Calendar connected for user %s (%s)", user_id, connection.provider)
    return connection
