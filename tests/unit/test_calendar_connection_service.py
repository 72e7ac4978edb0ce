"""Tests for linking a bishopric member's calendar account."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.exceptions import NotFoundError, UpstreamCalendarError, ValidationError
from app.services.calendar_connection_service import (
    complete_connection,
    get_connect_url,
    provider_from_service_type,
    save_connection,
)
from app.services.calendar_gateway import CalendarAccount

MODULE = "app.services.calendar_connection_service"


def make_session(user=None):
    session = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    session.execute = AsyncMock(return_value=result)
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    return session


def account(**overrides):
    data = {"id": "991", "email": "bishop@example.com", "provider": "Google", "access_token": "tok"}
    data.update(overrides)
    return CalendarAccount(**data)


def test_provider_mapping():
    assert provider_from_service_type("Google") == "GOOGLE"
    assert provider_from_service_type("Office365") == "MICROSOFT"


def test_connect_url_rejects_unknown_provider():
    with pytest.raises(ValidationError):
        get_connect_url(MagicMock(), SimpleNamespace(id=1), "Yahoo")


@pytest.mark.asyncio
async def test_save_creates_connection():
    session = make_session()
    with patch(f"{MODULE}.get_connection_for_user", new_callable=AsyncMock, return_value=None):
        connection = await save_connection(session, 5, account())

    assert connection.user_id == 5
    assert connection.provider == "GOOGLE"
    assert connection.access_token == "tok"
    session.add.assert_called_once_with(connection)


@pytest.mark.asyncio
async def test_save_replaces_existing_connection():
    existing = SimpleNamespace(
        user_id=5, provider="GOOGLE", remote_account_id="1", email=None, access_token="old", is_active=False
    )
    session = make_session()
    with patch(f"{MODULE}.get_connection_for_user", new_callable=AsyncMock, return_value=existing):
        connection = await save_connection(session, 5, account(provider="Office365", access_token="new"))

    assert connection is existing
    assert connection.provider == "MICROSOFT"
    assert connection.access_token == "new"
    assert connection.is_active is True


@pytest.mark.asyncio
async def test_complete_unknown_user():
    gateway = MagicMock()
    gateway.exchange_code = AsyncMock()

    with pytest.raises(NotFoundError):
        await complete_connection(make_session(user=None), gateway, 5, "code")
    gateway.exchange_code.assert_not_awaited()


@pytest.mark.asyncio
async def test_complete_without_token():
    gateway = MagicMock()
    gateway.exchange_code = AsyncMock(return_value=account(access_token=None))

    with pytest.raises(UpstreamCalendarError):
        await complete_connection(make_session(user=SimpleNamespace(id=5)), gateway, 5, "code")
