import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_same_ward, get_gateway, get_session, get_staff_user
from app.api.schemas.appointment import BookAppointmentRequest, BookAppointmentResponse
from app.models.appointment import Appointment, AppointmentPublic
from app.models.user import User
from app.services.appointment_service import (
    cancel_appointment,
    create_appointment,
    list_appointments_for_ward,
)
from app.services.calendar_gateway import CalendarGateway

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wards/{ward_id}/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a, from_attributes=True)


@router.post("", response_model=BookAppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    ward_id: int,
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    gateway: CalendarGateway = Depends(get_gateway),
) -> BookAppointmentResponse:
    appointment_id = await create_appointment(
        session,
        gateway,
        ward_id,
        body.interview_type_id,
        body.member_name,
        str(body.member_email),
        body.member_phone,
        body.slot.to_slot(),
    )
    return BookAppointmentResponse(appointment_id=appointment_id)


@router.get("", response_model=list[AppointmentPublic])
async def list_ward_appointments(
    ward_id: int,
    from_time: datetime | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_staff_user),
) -> list[AppointmentPublic]:
    ensure_same_ward(current_user, ward_id)
    appointments = await list_appointments_for_ward(
        session, ward_id, from_time=from_time, status=status_filter
    )
    return [_to_public(a) for a in appointments]


@router.delete("/{appointment_id}", response_model=AppointmentPublic)
async def cancel_ward_appointment(
    ward_id: int,
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    gateway: CalendarGateway = Depends(get_gateway),
    current_user: User = Depends(get_staff_user),
) -> AppointmentPublic:
    ensure_same_ward(current_user, ward_id)
    appointment = await cancel_appointment(session, gateway, ward_id, appointment_id)
    logger.info("Appointment %s cancelled by user %s", appointment_id, current_user.id)
    return _to_public(appointment)
