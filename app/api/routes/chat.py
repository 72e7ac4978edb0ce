from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_assistant, get_gateway, get_session
from app.api.schemas.appointment import SlotInfo
from app.api.schemas.chat import ChatRequest, ChatResponse
from app.services.assistant_client import AssistantClient
from app.services.calendar_gateway import CalendarGateway
from app.services.chat_service import handle_chat

router = APIRouter(prefix="/wards/{ward_id}/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    ward_id: int,
    body: ChatRequest,
    session: AsyncSession = Depends(get_session),
    gateway: CalendarGateway = Depends(get_gateway),
    assistant: AssistantClient | None = Depends(get_assistant),
) -> ChatResponse:
    """One turn of the booking conversation. Always answers; errors become an apology."""
    reply = await handle_chat(
        session,
        gateway,
        assistant,
        ward_id,
        [m.model_dump() for m in body.messages],
        offered_slots=[s.to_slot() for s in body.offered_slots],
        interview_type_id=body.interview_type_id,
        member_name=body.member_name,
        member_email=body.member_email,
        member_phone=body.member_phone,
    )
    return ChatResponse(
        message=reply.message,
        slots=[SlotInfo.from_slot(s) for s in reply.slots] or None,
        interview_type_id=reply.interview_type_id,
        appointment_id=reply.appointment_id,
    )
