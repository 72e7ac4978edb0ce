"""
Aurinko calendar API client.

Aurinko fronts both Google and Office 365 calendars behind one REST API.
Every call is authorized with the access token stored on the bishopric
member's CalendarConnection. Non-2xx responses and transport failures are
raised as UpstreamCalendarError so callers can isolate one member's
failure from the rest.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from app.core.config import settings
from app.core.exceptions import UpstreamCalendarError
from app.core.timeutil import to_local, to_naive_utc

logger = logging.getLogger(__name__)

# Provider names as Aurinko spells them in serviceType
AURINKO_PROVIDERS = ("Google", "Office365")


def _iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def parse_event_time(value: dict) -> datetime:
    """Turn an Aurinko {dateTime, timeZone} pair into naive UTC.

    Raises ValueError for anything else, including all-day values that
    carry only a date.
    """
    raw = value.get("dateTime") if isinstance(value, dict) else None
    if not isinstance(raw, str):
        raise ValueError(f"Event time has no dateTime: {value!r}")
    dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        zone = value.get("timeZone") or settings.timezone
        try:
            dt = dt.replace(tzinfo=ZoneInfo(zone))
        except (ValueError, TypeError, ZoneInfoNotFoundError) as e:
            raise ValueError(f"Unknown event time zone {zone!r}") from e
    return to_naive_utc(dt)


def event_time(dt: datetime) -> dict[str, str]:
    """Naive UTC to an Aurinko {dateTime, timeZone} pair in the configured zone."""
    return {"dateTime": to_local(dt).isoformat(), "timeZone": settings.timezone}


@dataclass
class CalendarEvent:
    id: str
    title: str
    start: dict
    end: dict
    description: str | None = None
    busy: bool | None = None
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarEvent":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or data.get("subject") or "",
            start=data.get("start") or {},
            end=data.get("end") or {},
            description=data.get("description"),
            busy=data.get("busy"),
            raw=data,
        )

    @property
    def start_utc(self) -> datetime:
        return parse_event_time(self.start)

    @property
    def end_utc(self) -> datetime:
        return parse_event_time(self.end)


@dataclass
class CalendarAccount:
    id: str
    email: str | None
    provider: str
    access_token: str | None


class CalendarGateway:
    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.aurinko_base_url).rstrip("/")
        self.timeout = timeout or settings.calendar_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, path: str, token: str | None = None, **kwargs: Any
    ) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        client = self._get_client()
        try:
            resp = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamCalendarError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            logger.warning(
                "Aurinko %s %s failed: status=%s body=%s",
                method,
                path,
                resp.status_code,
                resp.text[:500],
            )
            raise UpstreamCalendarError(f"{method} {path} returned {resp.status_code}")
        return resp

    # --- OAuth ---

    def get_auth_url(self, user_id: int, provider: str) -> str:
        params = {
            "clientId": settings.aurinko_client_id,
            "serviceType": provider,
            "scopes": "Calendar.ReadWrite",
            "responseType": "code",
            "returnUrl": settings.aurinko_return_url,
            "state": str(user_id),
        }
        return f"{self.base_url}/auth/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str) -> CalendarAccount:
        resp = await self._request(
            "POST",
            f"/auth/token/{code}",
            json={
                "clientId": settings.aurinko_client_id,
                "clientSecret": settings.aurinko_client_secret,
            },
        )
        data = resp.json()
        return CalendarAccount(
            id=str(data.get("account", "")),
            email=data.get("email"),
            provider=data.get("serviceType", ""),
            access_token=data.get("accessToken"),
        )

    # --- Calendars ---

    async def get_calendars(self, token: str) -> list[dict]:
        resp = await self._request("GET", "/calendars", token=token)
        return resp.json().get("records") or []

    async def get_primary_calendar(self, token: str) -> str:
        calendars = await self.get_calendars(token)
        if not calendars:
            raise UpstreamCalendarError("Account has no calendars")
        primary = next((c for c in calendars if c.get("isPrimary")), calendars[0])
        return str(primary["id"])

    # --- Events ---

    async def get_events(
        self, token: str, calendar_id: str, start: datetime, end: datetime
    ) -> list[CalendarEvent]:
        resp = await self._request(
            "GET",
            f"/calendars/{calendar_id}/events",
            token=token,
            params={"after": _iso_utc(start), "before": _iso_utc(end)},
        )
        return [CalendarEvent.from_dict(r) for r in resp.json().get("records") or []]

    async def find_events_by_title(
        self,
        token: str,
        calendar_id: str,
        title_match: str,
        start: datetime,
        end: datetime,
    ) -> list[CalendarEvent]:
        """Events in [start, end) whose title contains title_match, case-insensitive."""
        needle = title_match.lower()
        events = await self.get_events(token, calendar_id, start, end)
        return [e for e in events if needle in e.title.lower()]

    async def create_event(self, token: str, calendar_id: str, event: dict) -> CalendarEvent:
        resp = await self._request(
            "POST", f"/calendars/{calendar_id}/events", token=token, json=event
        )
        return CalendarEvent.from_dict(resp.json())

    async def update_event(
        self, token: str, calendar_id: str, event_id: str, updates: dict
    ) -> CalendarEvent:
        resp = await self._request(
            "PATCH", f"/calendars/{calendar_id}/events/{event_id}", token=token, json=updates
        )
        return CalendarEvent.from_dict(resp.json())

    async def delete_event(self, token: str, calendar_id: str, event_id: str) -> None:
        await self._request("DELETE", f"/calendars/{calendar_id}/events/{event_id}", token=token)


_gateway: CalendarGateway | None = None


def get_calendar_gateway() -> CalendarGateway:
    global _gateway
    if _gateway is None:
        _gateway = CalendarGateway()
    return _gateway
