import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, SlotConflictError, ValidationError
from app.core.timeutil import to_naive_utc, utc_naive_now
from app.models.appointment import Appointment, AppointmentStatus
from app.models.bishopric_member import BishopricMember
from app.models.calendar_connection import CalendarConnection
from app.models.interview_type import InterviewType, InterviewTypeBishopricLink
from app.services.calendar_gateway import CalendarGateway, event_time
from app.services.slot_service import TimeSlot, get_interview_type

logger = logging.getLogger(__name__)

UNIQUE_SLOT_INDEX = "uq_appointments_member_start_scheduled"


async def find_conflicting_appointment(
    session: AsyncSession, bishopric_member_id: int, start: datetime, end: datetime
) -> Appointment | None:
    """A SCHEDULED appointment of this member overlapping [start, end), if any."""
    result = await session.execute(
        select(Appointment)
        .where(
            Appointment.bishopric_member_id == bishopric_member_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_bookable_member(
    session: AsyncSession, ward_id: int, interview_type_id: int, bishopric_member_id: int
) -> BishopricMember:
    """The active bishopric member of this ward who may hold this interview type."""
    result = await session.execute(
        select(BishopricMember)
        .join(
            InterviewTypeBishopricLink,
            InterviewTypeBishopricLink.bishopric_member_id == BishopricMember.id,
        )
        .where(
            BishopricMember.id == bishopric_member_id,
            BishopricMember.ward_id == ward_id,
            BishopricMember.is_active == True,  # noqa: E712
            InterviewTypeBishopricLink.interview_type_id == interview_type_id,
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise NotFoundError(
            f"Bishopric member {bishopric_member_id} does not hold interview type "
            f"{interview_type_id} in ward {ward_id}"
        )
    return member


async def get_member_calendar_connection(
    session: AsyncSession, bishopric_member_id: int
) -> CalendarConnection | None:
    result = await session.execute(
        select(CalendarConnection)
        .join(BishopricMember, BishopricMember.user_id == CalendarConnection.user_id)
        .where(
            BishopricMember.id == bishopric_member_id,
            CalendarConnection.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


def build_event_description(
    interview_type_name: str, member_name: str, member_email: str, member_phone: str | None
) -> str:
    lines = [
        f"Interview Type: {interview_type_name}",
        f"Member: {member_name}",
        f"Email: {member_email}",
    ]
    if member_phone:
        lines.append(f"Phone: {member_phone}")
    return "\n".join(lines)


async def mirror_to_calendar(
    session: AsyncSession,
    gateway: CalendarGateway,
    appointment: Appointment,
    interview_type: InterviewType,
) -> str | None:
    """Put the booked interview on the bishopric member's calendar.

    Best effort: every failure is logged and swallowed; the appointment stands.
    Returns the remote event id when one was created.
    """
    try:
        connection = await get_member_calendar_connection(session, appointment.bishopric_member_id)
        if not connection:
            logger.info(
                "Bishopric member %s has no calendar connected; appointment %s not mirrored",
                appointment.bishopric_member_id,
                appointment.id,
            )
            return None
        calendar_id = await gateway.get_primary_calendar(connection.access_token)
        event = await gateway.create_event(
            connection.access_token,
            calendar_id,
            {
                "title": f"Interview: {appointment.member_name}",
                "description": build_event_description(
                    interview_type.name,
                    appointment.member_name,
                    appointment.member_email,
                    appointment.member_phone,
                ),
                "start": event_time(appointment.start_time),
                "end": event_time(appointment.end_time),
                "busy": True,
            },
        )
        appointment.bishopric_event_id = event.id or None
        session.add(appointment)
        await session.commit()
        return appointment.bishopric_event_id
    except Exception as e:
        logger.exception("Error creating calendar event for appointment %s: %s", appointment.id, e)
        await session.rollback()
        return None


async def create_appointment(
    session: AsyncSession,
    gateway: CalendarGateway,
    ward_id: int,
    interview_type_id: int | None,
    member_name: str | None,
    member_email: str | None,
    member_phone: str | None,
    slot: TimeSlot,
) -> int:
    if not interview_type_id or not (member_name or "").strip() or not (member_email or "").strip():
        raise ValidationError("Missing required fields: interview type, member name and email")
    start = to_naive_utc(slot.start)
    end = to_naive_utc(slot.end)
    if end <= start:
        raise ValidationError("Slot must end after it starts")

    interview_type = await get_interview_type(session, ward_id, interview_type_id)
    await get_bookable_member(session, ward_id, interview_type.id, slot.bishopric_member_id)

    # Re-check: the slot may have been taken since it was offered
    existing = await find_conflicting_appointment(session, slot.bishopric_member_id, start, end)
    if existing:
        raise SlotConflictError(
            f"Bishopric member {slot.bishopric_member_id} already has appointment {existing.id} at that time"
        )

    appointment = Appointment(
        ward_id=ward_id,
        interview_type_id=interview_type.id,
        bishopric_member_id=slot.bishopric_member_id,
        member_name=member_name.strip(),
        member_email=member_email.strip(),
        member_phone=(member_phone or "").strip() or None,
        start_time=start,
        end_time=end,  # trusts the slot; duration is not recomputed
        status=AppointmentStatus.SCHEDULED.value,
    )
    try:
        async with session.begin_nested():
            session.add(appointment)
            await session.flush()
    except IntegrityError as e:
        if UNIQUE_SLOT_INDEX in str(e.orig):
            # Concurrent booking won the unique (member, start) index
            raise SlotConflictError("That time was just booked by someone else") from e
        raise ValidationError("Appointment references a missing ward, interview type or member") from e
    await session.refresh(appointment)
    # The booking stands on its own before any calendar call
    await session.commit()
    logger.info(
        "Appointment %s scheduled: member=%s bishopric_member=%s start=%s",
        appointment.id,
        appointment.member_email,
        appointment.bishopric_member_id,
        appointment.start_time,
    )

    appointment_id = appointment.id
    await mirror_to_calendar(session, gateway, appointment, interview_type)
    return appointment_id


async def get_appointment(session: AsyncSession, ward_id: int, appointment_id: int) -> Appointment:
    result = await session.execute(
        select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.ward_id == ward_id,
        )
    )
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


async def list_appointments_for_ward(
    session: AsyncSession,
    ward_id: int,
    from_time: datetime | None = None,
    status: str | None = None,
) -> list[Appointment]:
    q = select(Appointment).where(Appointment.ward_id == ward_id).order_by(Appointment.start_time)
    if from_time:
        q = q.where(Appointment.start_time >= to_naive_utc(from_time))
    if status:
        q = q.where(Appointment.status == status)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_scheduled_appointments(
    session: AsyncSession, ward_id: int, from_time: datetime | None = None
) -> list[Appointment]:
    """Upcoming SCHEDULED appointments of a ward; the optimizer's back-to-back snapshot."""
    return await list_appointments_for_ward(
        session,
        ward_id,
        from_time=from_time or utc_naive_now(),
        status=AppointmentStatus.SCHEDULED.value,
    )


async def cancel_appointment(
    session: AsyncSession, gateway: CalendarGateway, ward_id: int, appointment_id: int
) -> Appointment:
    appointment = await get_appointment(session, ward_id, appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED.value:
        return appointment
    appointment.status = AppointmentStatus.CANCELLED.value
    session.add(appointment)
    await session.flush()

    if appointment.bishopric_event_id:
        try:
            connection = await get_member_calendar_connection(session, appointment.bishopric_member_id)
            if connection:
                calendar_id = await gateway.get_primary_calendar(connection.access_token)
                await gateway.delete_event(
                    connection.access_token, calendar_id, appointment.bishopric_event_id
                )
        except Exception as e:
            logger.exception(
                "Error removing calendar event %s for appointment %s: %s",
                appointment.bishopric_event_id,
                appointment.id,
                e,
            )
    return appointment
