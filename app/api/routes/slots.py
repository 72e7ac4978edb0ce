from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_gateway, get_session
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.core.config import settings
from app.services.appointment_service import get_scheduled_appointments
from app.services.calendar_gateway import CalendarGateway
from app.services.slot_service import format_time_slots, optimize_slots, resolve_available_slots

router = APIRouter(prefix="/wards/{ward_id}/slots", tags=["slots"])


@router.get("", response_model=AvailableSlotsResponse)
async def available_slots(
    ward_id: int,
    interview_type_id: int = Query(...),
    days_ahead: int = Query(settings.slot_search_days, ge=1, le=90),
    limit: int = Query(settings.slot_display_limit, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    gateway: CalendarGateway = Depends(get_gateway),
) -> AvailableSlotsResponse:
    """Best open times for an interview type, ranked soonest and back-to-back first."""
    slots = await resolve_available_slots(
        session, gateway, ward_id, interview_type_id, days_ahead=days_ahead
    )
    existing = await get_scheduled_appointments(session, ward_id)
    ranked = optimize_slots(slots, existing)
    return AvailableSlotsResponse(
        interview_type_id=interview_type_id,
        slots=[SlotInfo.from_slot(s) for s in ranked[:limit]],
        text=format_time_slots(ranked, limit),
    )
