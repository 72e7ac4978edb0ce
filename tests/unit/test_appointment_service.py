"""
Tests for booking and cancelling appointments.

The AsyncSession is mocked; lookups are patched at module level.
"""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError, SlotConflictError, ValidationError
from app.models.appointment import AppointmentStatus
from app.services.appointment_service import (
    build_event_description,
    cancel_appointment,
    create_appointment,
    get_bookable_member,
)
from app.services.calendar_gateway import CalendarEvent

MODULE = "app.services.appointment_service"
START = datetime(2026, 11, 2, 16, 0)


def make_session():
    session = MagicMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()

    def assign_id(obj):
        if getattr(obj, "id", None) is None:
            obj.id = 42

    session.add = MagicMock(side_effect=assign_id)
    # begin_nested() is used as `async with`; MagicMock supports the async context protocol
    session.begin_nested = MagicMock()
    return session


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.get_primary_calendar = AsyncMock(return_value="cal-1")
    gw.create_event = AsyncMock(return_value=CalendarEvent.from_dict({"id": "evt-9", "title": "x"}))
    gw.delete_event = AsyncMock(return_value=None)
    return gw


@pytest.fixture
def lookups():
    with patch(f"{MODULE}.get_interview_type", new_callable=AsyncMock) as get_type, patch(
        f"{MODULE}.find_conflicting_appointment", new_callable=AsyncMock
    ) as find_conflict, patch(
        f"{MODULE}.get_member_calendar_connection", new_callable=AsyncMock
    ) as get_conn, patch(
        f"{MODULE}.get_bookable_member", new_callable=AsyncMock
    ) as get_member:
        get_type.return_value = SimpleNamespace(id=7, name="Temple Recommend", duration=30)
        find_conflict.return_value = None
        get_conn.return_value = SimpleNamespace(access_token="tok")
        get_member.return_value = SimpleNamespace(id=3, ward_id=1)
        yield SimpleNamespace(
            get_type=get_type, find_conflict=find_conflict, get_conn=get_conn, get_member=get_member
        )


async def book(session, gateway, slot, **overrides):
    kwargs = {
        "interview_type_id": 7,
        "member_name": "Sister Allen",
        "member_email": "allen@example.com",
        "member_phone": "555-0100",
    }
    kwargs.update(overrides)
    return await create_appointment(
        session,
        gateway,
        1,
        kwargs["interview_type_id"],
        kwargs["member_name"],
        kwargs["member_email"],
        kwargs["member_phone"],
        slot,
    )


def added_appointment(session):
    return session.add.call_args_list[0].args[0]


class TestCreateAppointment:
    @pytest.mark.asyncio
    async def test_books_and_mirrors_to_calendar(self, session, gateway, lookups, slot_factory):
        slot = slot_factory(START, member_id=3)

        appointment_id = await book(session, gateway, slot)

        assert appointment_id == 42
        appt = added_appointment(session)
        assert appt.status == AppointmentStatus.SCHEDULED.value
        assert appt.bishopric_member_id == 3
        assert appt.start_time == slot.start
        assert appt.end_time == slot.end
        assert appt.member_phone == "555-0100"
        assert appt.bishopric_event_id == "evt-9"

        calendar_id, event = gateway.create_event.await_args.args[1:]
        assert calendar_id == "cal-1"
        assert event["title"] == "Interview: Sister Allen"
        assert event["busy"] is True
        assert "Interview Type: Temple Recommend" in event["description"]
        assert session.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_calendar_failure_keeps_appointment(self, session, gateway, lookups, slot_factory):
        gateway.create_event.side_effect = RuntimeError("calendar down")

        appointment_id = await book(session, gateway, slot_factory(START))

        assert appointment_id == 42
        assert added_appointment(session).bishopric_event_id is None
        session.commit.assert_awaited_once()
        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_calendar_connection_skips_mirroring(self, session, gateway, lookups, slot_factory):
        lookups.get_conn.return_value = None

        assert await book(session, gateway, slot_factory(START)) == 42
        gateway.create_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_appointment_is_a_conflict(self, session, gateway, lookups, slot_factory):
        lookups.find_conflict.return_value = SimpleNamespace(id=5)

        with pytest.raises(SlotConflictError):
            await book(session, gateway, slot_factory(START))
        session.add.assert_not_called()
        gateway.create_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unique_index_violation_is_a_conflict(self, session, gateway, lookups, slot_factory):
        session.flush.side_effect = IntegrityError(
            "INSERT",
            {},
            Exception(
                'duplicate key value violates unique constraint "uq_appointments_member_start_scheduled"'
            ),
        )

        with pytest.raises(SlotConflictError):
            await book(session, gateway, slot_factory(START))
        session.commit.assert_not_awaited()
        gateway.create_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_foreign_key_violation_is_not_a_conflict(self, session, gateway, lookups, slot_factory):
        session.flush.side_effect = IntegrityError(
            "INSERT",
            {},
            Exception('insert violates foreign key constraint "appointments_bishopric_member_id_fkey"'),
        )

        with pytest.raises(ValidationError):
            await book(session, gateway, slot_factory(START))
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_member_outside_ward_or_type_is_rejected(self, session, gateway, lookups, slot_factory):
        lookups.get_member.side_effect = NotFoundError("Bishopric member 999999 does not hold interview type 7")

        with pytest.raises(NotFoundError):
            await book(session, gateway, slot_factory(START, member_id=999999))
        lookups.get_member.assert_awaited_once_with(session, 1, 7, 999999)
        lookups.find_conflict.assert_not_awaited()
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_booking_of_same_slot_rejected(self, session, gateway, lookups, slot_factory):
        slot = slot_factory(START)
        lookups.find_conflict.side_effect = [None, SimpleNamespace(id=42)]

        assert await book(session, gateway, slot) == 42
        with pytest.raises(SlotConflictError):
            await book(session, gateway, slot, member_name="Brother Reed", member_email="reed@example.com")
        assert session.add.call_count == 2  # the appointment, then the mirrored event id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"interview_type_id": None},
            {"member_name": ""},
            {"member_name": "   "},
            {"member_email": None},
        ],
    )
    async def test_missing_fields(self, session, gateway, lookups, slot_factory, overrides):
        with pytest.raises(ValidationError):
            await book(session, gateway, slot_factory(START), **overrides)
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_interview_type(self, session, gateway, lookups, slot_factory):
        lookups.get_type.side_effect = NotFoundError("Interview type 7 not found")

        with pytest.raises(NotFoundError):
            await book(session, gateway, slot_factory(START))

    @pytest.mark.asyncio
    async def test_phone_is_optional(self, session, gateway, lookups, slot_factory):
        await book(session, gateway, slot_factory(START), member_phone=None)

        assert added_appointment(session).member_phone is None
        assert "Phone" not in gateway.create_event.await_args.args[2]["description"]


class TestCancelAppointment:
    @pytest.mark.asyncio
    async def test_cancel_removes_calendar_event(self, session, gateway, lookups):
        appt = SimpleNamespace(
            id=42,
            bishopric_member_id=3,
            status=AppointmentStatus.SCHEDULED.value,
            bishopric_event_id="evt-9",
        )
        with patch(f"{MODULE}.get_appointment", new_callable=AsyncMock, return_value=appt):
            result = await cancel_appointment(session, gateway, 1, 42)

        assert result.status == AppointmentStatus.CANCELLED.value
        gateway.delete_event.assert_awaited_once_with("tok", "cal-1", "evt-9")

    @pytest.mark.asyncio
    async def test_cancel_survives_calendar_failure(self, session, gateway, lookups):
        gateway.delete_event.side_effect = RuntimeError("gone")
        appt = SimpleNamespace(
            id=42,
            bishopric_member_id=3,
            status=AppointmentStatus.SCHEDULED.value,
            bishopric_event_id="evt-9",
        )
        with patch(f"{MODULE}.get_appointment", new_callable=AsyncMock, return_value=appt):
            result = await cancel_appointment(session, gateway, 1, 42)

        assert result.status == AppointmentStatus.CANCELLED.value

    @pytest.mark.asyncio
    async def test_already_cancelled_is_a_no_op(self, session, gateway, lookups):
        appt = SimpleNamespace(
            id=42, bishopric_member_id=3, status=AppointmentStatus.CANCELLED.value, bishopric_event_id="evt-9"
        )
        with patch(f"{MODULE}.get_appointment", new_callable=AsyncMock, return_value=appt):
            await cancel_appointment(session, gateway, 1, 42)

        session.flush.assert_not_awaited()
        gateway.delete_event.assert_not_awaited()


def test_event_description():
    assert build_event_description("Youth Interview", "Sam", "sam@example.com", None) == (
        "Interview Type: Youth Interview\nMember: Sam\nEmail: sam@example.com"
    )


class TestGetBookableMember:
    @pytest.mark.asyncio
    async def test_unknown_or_foreign_member(self):
        session = make_session()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session.execute.return_value = result

        with pytest.raises(NotFoundError):
            await get_bookable_member(session, 1, 7, 999999)

    @pytest.mark.asyncio
    async def test_member_of_ward(self):
        session = make_session()
        member = SimpleNamespace(id=3, ward_id=1)
        result = MagicMock()
        result.scalar_one_or_none.return_value = member
        session.execute.return_value = result

        assert await get_bookable_member(session, 1, 7, 3) is member
