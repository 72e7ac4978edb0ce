from datetime import datetime

from pydantic import BaseModel, EmailStr

from app.core.timeutil import to_naive_utc
from app.services.slot_service import TimeSlot


class SlotInfo(BaseModel):
    start: datetime  # UTC
    end: datetime
    bishopric_member_id: int
    bishopric_member_name: str
    bishopric_position: str

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> "SlotInfo":
        return cls(**slot.to_dict())

    def to_slot(self) -> TimeSlot:
        return TimeSlot(
            start=to_naive_utc(self.start),
            end=to_naive_utc(self.end),
            bishopric_member_id=self.bishopric_member_id,
            bishopric_member_name=self.bishopric_member_name,
            bishopric_position=self.bishopric_position,
        )


class AvailableSlotsResponse(BaseModel):
    interview_type_id: int
    slots: list[SlotInfo]
    text: str  # the same slots rendered for display


class BookAppointmentRequest(BaseModel):
    interview_type_id: int
    member_name: str
    member_email: EmailStr
    member_phone: str | None = None
    slot: SlotInfo


class BookAppointmentResponse(BaseModel):
    appointment_id: int
