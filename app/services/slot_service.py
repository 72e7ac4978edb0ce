import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, UpstreamCalendarError, ValidationError
from app.core.timeutil import to_local, to_naive_utc, utc_naive_now
from app.models.appointment import Appointment, AppointmentStatus
from app.models.bishopric_member import BishopricMember
from app.models.calendar_connection import CalendarConnection
from app.models.interview_type import InterviewType, InterviewTypeBishopricLink
from app.models.user import User
from app.services.calendar_gateway import CalendarGateway

logger = logging.getLogger(__name__)

SOONNESS_MAX_POINTS = 30
BACK_TO_BACK_BONUS = 20
BACK_TO_BACK_WINDOW = timedelta(minutes=5)

NO_SLOTS_MESSAGE = (
    "Unfortunately, there are no available time slots in the next two weeks. "
    "Would you like to:\n"
    "1. Check availability for a later date\n"
    "2. Contact the executive secretary directly"
)


@dataclass(frozen=True)
class TimeSlot:
    """Candidate interview window. Times are naive UTC, like the DB columns."""

    start: datetime
    end: datetime
    bishopric_member_id: int
    bishopric_member_name: str
    bishopric_position: str

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "bishopric_member_id": self.bishopric_member_id,
            "bishopric_member_name": self.bishopric_member_name,
            "bishopric_position": self.bishopric_position,
        }


class HasEndTime(Protocol):
    bishopric_member_id: int
    end_time: datetime


@dataclass
class AuthorizedMember:
    member: BishopricMember
    user: User
    connection: CalendarConnection | None


# --- queries ---


async def get_interview_type(
    session: AsyncSession, ward_id: int, interview_type_id: int
) -> InterviewType:
    result = await session.execute(
        select(InterviewType).where(
            InterviewType.id == interview_type_id,
            InterviewType.ward_id == ward_id,
        )
    )
    interview_type = result.scalar_one_or_none()
    if not interview_type:
        raise NotFoundError(f"Interview type {interview_type_id} not found")
    return interview_type


async def get_authorized_members(
    session: AsyncSession, ward_id: int, interview_type_id: int
) -> list[AuthorizedMember]:
    """Active bishopric members allowed to hold this interview type, with their connection."""
    result = await session.execute(
        select(BishopricMember, User, CalendarConnection)
        .join(
            InterviewTypeBishopricLink,
            InterviewTypeBishopricLink.bishopric_member_id == BishopricMember.id,
        )
        .join(User, User.id == BishopricMember.user_id)
        .outerjoin(
            CalendarConnection,
            and_(
                CalendarConnection.user_id == User.id,
                CalendarConnection.is_active == True,  # noqa: E712
            ),
        )
        .where(
            InterviewTypeBishopricLink.interview_type_id == interview_type_id,
            BishopricMember.ward_id == ward_id,
            BishopricMember.is_active == True,  # noqa: E712
        )
    )
    return [AuthorizedMember(member=m, user=u, connection=c) for m, u, c in result.all()]


async def get_scheduled_appointments_for_members(
    session: AsyncSession,
    member_ids: Sequence[int],
    start_inclusive: datetime,
    end_exclusive: datetime,
) -> list[Appointment]:
    """SCHEDULED appointments of the given members overlapping [start, end)."""
    if not member_ids:
        return []
    result = await session.execute(
        select(Appointment).where(
            Appointment.bishopric_member_id.in_(member_ids),
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.start_time < end_exclusive,
            Appointment.end_time > start_inclusive,
        )
    )
    return list(result.scalars().all())


# --- availability ---


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open interval overlap: [start, end) and [other_start, other_end)."""
    return start < other_end and end > other_start


def tile_block(
    block_start: datetime,
    block_end: datetime,
    duration: timedelta,
    busy: Iterable[tuple[datetime, datetime]] = (),
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> list[tuple[datetime, datetime]]:
    """Cut an availability block into back-to-back windows of exactly `duration`.

    A trailing remainder shorter than `duration` is dropped, as is any window
    overlapping a busy interval, starting before `not_before` or ending after
    `not_after`.
    """
    if duration <= timedelta(0):
        raise ValueError("duration must be positive")
    busy = list(busy)
    windows: list[tuple[datetime, datetime]] = []
    slot_start = block_start
    if not_after is not None:
        block_end = min(block_end, not_after)
    while slot_start + duration <= block_end:
        slot_end = slot_start + duration
        too_early = not_before is not None and slot_start < not_before
        if not too_early and not any(overlaps(slot_start, slot_end, b_s, b_e) for b_s, b_e in busy):
            windows.append((slot_start, slot_end))
        slot_start = slot_end
    return windows


async def _member_slots(
    gateway: CalendarGateway,
    authorized: AuthorizedMember,
    window_start: datetime,
    window_end: datetime,
    duration: timedelta,
    busy: list[tuple[datetime, datetime]],
) -> list[TimeSlot]:
    member, user, connection = authorized.member, authorized.user, authorized.connection
    calendar_id = await gateway.get_primary_calendar(connection.access_token)
    blocks = await gateway.find_events_by_title(
        connection.access_token,
        calendar_id,
        member.availability_code,
        window_start,
        window_end,
    )
    slots: list[TimeSlot] = []
    for block in blocks:
        try:
            block_start, block_end = block.start_utc, block.end_utc
        except ValueError as e:
            # e.g. all-day events carry only a date
            logger.warning(
                "Skipping availability event %s of bishopric member %s: %s",
                block.id,
                member.id,
                e,
            )
            continue
        for start, end in tile_block(
            block_start,
            block_end,
            duration,
            busy,
            not_before=window_start,
            not_after=window_end,
        ):
            slots.append(
                TimeSlot(
                    start=start,
                    end=end,
                    bishopric_member_id=member.id,
                    bishopric_member_name=user.display_name,
                    bishopric_position=member.position,
                )
            )
    return slots


async def _member_slots_isolated(
    gateway: CalendarGateway,
    authorized: AuthorizedMember,
    window_start: datetime,
    window_end: datetime,
    duration: timedelta,
    busy: list[tuple[datetime, datetime]],
) -> list[TimeSlot]:
    """One member's slots; any calendar failure or timeout yields no slots for that member."""
    try:
        return await asyncio.wait_for(
            _member_slots(gateway, authorized, window_start, window_end, duration, busy),
            timeout=settings.calendar_timeout_seconds,
        )
    except TimeoutError:
        logger.warning(
            "Calendar lookup timed out for bishopric member %s; skipping",
            authorized.member.id,
        )
    except UpstreamCalendarError as e:
        logger.warning(
            "Error getting availability for bishopric member %s (%s): %s",
            authorized.member.id,
            authorized.user.display_name,
            e,
        )
    except Exception as e:
        logger.exception(
            "Unexpected error getting availability for bishopric member %s: %s",
            authorized.member.id,
            e,
        )
    return []


async def resolve_available_slots(
    session: AsyncSession,
    gateway: CalendarGateway,
    ward_id: int,
    interview_type_id: int,
    window_start: datetime | None = None,
    days_ahead: int | None = None,
) -> list[TimeSlot]:
    """Free, duration-sized slots across all authorized bishopric members. Unordered."""
    if days_ahead is None:
        days_ahead = settings.slot_search_days
    if isinstance(days_ahead, bool) or not isinstance(days_ahead, int) or days_ahead <= 0:
        raise ValidationError("days_ahead must be a positive integer")

    interview_type = await get_interview_type(session, ward_id, interview_type_id)
    if not interview_type.is_active:
        raise ValidationError(f"Interview type {interview_type_id} is not active")
    if interview_type.duration <= 0:
        raise ValidationError(f"Interview type {interview_type_id} has no duration")
    duration = timedelta(minutes=interview_type.duration)

    start = to_naive_utc(window_start) if window_start else utc_naive_now()
    end = start + timedelta(days=days_ahead)

    members = await get_authorized_members(session, ward_id, interview_type.id)
    appointments = await get_scheduled_appointments_for_members(
        session, [m.member.id for m in members], start, end
    )
    busy: dict[int, list[tuple[datetime, datetime]]] = {}
    for apt in appointments:
        busy.setdefault(apt.bishopric_member_id, []).append((apt.start_time, apt.end_time))

    connected = []
    for m in members:
        if m.connection is None:
            logger.debug("Bishopric member %s has no calendar connected; skipping", m.member.id)
            continue
        connected.append(m)

    results = await asyncio.gather(
        *(
            _member_slots_isolated(gateway, m, start, end, duration, busy.get(m.member.id, []))
            for m in connected
        )
    )
    slots = [slot for member_slots in results for slot in member_slots]
    logger.info(
        "Resolved %d slot(s) for interview type %s from %d/%d member calendar(s)",
        len(slots),
        interview_type.id,
        len(connected),
        len(members),
    )
    return slots


# --- ranking ---


def score_slot(slot: TimeSlot, existing_appointments: Sequence[HasEndTime], now: datetime) -> int:
    days_from_now = (slot.start - now) // timedelta(days=1)
    score = min(SOONNESS_MAX_POINTS, max(0, SOONNESS_MAX_POINTS - days_from_now))
    if any(
        apt.bishopric_member_id == slot.bishopric_member_id
        and abs(apt.end_time - slot.start) < BACK_TO_BACK_WINDOW
        for apt in existing_appointments
    ):
        score += BACK_TO_BACK_BONUS
    return score


def optimize_slots(
    slots: Sequence[TimeSlot],
    existing_appointments: Sequence[HasEndTime],
    now: datetime | None = None,
) -> list[TimeSlot]:
    """Rank by soonness plus back-to-back bonus; equal scores stay chronological."""
    now = to_naive_utc(now) if now else utc_naive_now()
    chronological = sorted(slots, key=lambda s: s.start)
    return sorted(chronological, key=lambda s: -score_slot(s, existing_appointments, now))


# --- presentation ---


def _clock(dt: datetime) -> str:
    return dt.strftime("%I:%M %p").lstrip("0")


def format_time_slots(
    slots: Sequence[TimeSlot], limit: int | None = None, tz: ZoneInfo | None = None
) -> str:
    limit = settings.slot_display_limit if limit is None else limit
    top = list(slots)[: max(limit, 0)]
    if not top:
        return NO_SLOTS_MESSAGE
    lines = []
    for index, slot in enumerate(top, start=1):
        local = to_local(slot.start, tz)
        lines.append(
            f"{index}. {local:%A, %B} {local.day} at {_clock(local)} "
            f"with {slot.bishopric_member_name} ({slot.bishopric_position})"
        )
    return "\n".join(lines)
