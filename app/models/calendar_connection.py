from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from app.core.timeutil import utc_naive_now


class CalendarProvider(str, Enum):
    GOOGLE = "GOOGLE"
    MICROSOFT = "MICROSOFT"


class CalendarConnection(SQLModel, table=True):
    __tablename__ = "calendar_connections"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)  # one per user
    provider: str
    remote_account_id: str
    email: str | None = None
    access_token: str
    last_synced_at: datetime = Field(default_factory=utc_naive_now)
    is_active: bool = True


class CalendarConnectionPublic(SQLModel):
    id: int
    provider: str
    email: str | None = None
    last_synced_at: datetime
    is_active: bool
