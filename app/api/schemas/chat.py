from typing import Literal

from pydantic import BaseModel, Field

from app.api.schemas.appointment import SlotInfo


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    # Echo of what the previous turn returned, so a booking can refer to it
    offered_slots: list[SlotInfo] = Field(default_factory=list)
    interview_type_id: int | None = None
    member_name: str | None = None
    member_email: str | None = None
    member_phone: str | None = None


class ChatResponse(BaseModel):
    message: str
    slots: list[SlotInfo] | None = None
    interview_type_id: int | None = None
    appointment_id: int | None = None
