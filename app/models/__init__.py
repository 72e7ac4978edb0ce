from app.models.ward import Ward, WardPublic, WardUpdate
from app.models.user import User, UserPublic, UserRole
from app.models.interview_type import (
    InterviewType,
    InterviewTypeBishopricLink,
    InterviewTypePublic,
)
from app.models.bishopric_member import BishopricMember
from app.models.calendar_connection import (
    CalendarConnection,
    CalendarConnectionPublic,
    CalendarProvider,
)
from app.models.appointment import (
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
)

__all__ = [
    "Ward",
    "WardPublic",
    "WardUpdate",
    "User",
    "UserPublic",
    "UserRole",
    "InterviewType",
    "InterviewTypeBishopricLink",
    "InterviewTypePublic",
    "BishopricMember",
    "CalendarConnection",
    "CalendarConnectionPublic",
    "CalendarProvider",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
]
