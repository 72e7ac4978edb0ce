from datetime import datetime
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from app.core.timeutil import utc_naive_now


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        # No two scheduled interviews for the same bishopric member at the same start
        Index(
            "uq_appointments_member_start_scheduled",
            "bishopric_member_id",
            "start_time",
            unique=True,
            postgresql_where=text("status = 'SCHEDULED'"),
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    ward_id: int = Field(foreign_key="wards.id", index=True)
    interview_type_id: int = Field(foreign_key="interview_types.id")
    bishopric_member_id: int = Field(foreign_key="bishopric_members.id", index=True)
    member_name: str
    member_email: str
    member_phone: str | None = None
    start_time: datetime = Field(index=True)
    end_time: datetime
    status: str = Field(default=AppointmentStatus.SCHEDULED.value, index=True)
    bishopric_event_id: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    interview_type_id: int
    bishopric_member_id: int
    member_name: str
    member_email: str
    member_phone: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    created_at: datetime
