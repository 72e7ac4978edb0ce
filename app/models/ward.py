from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.timeutil import utc_naive_now


class WardBase(SQLModel):
    name: str
    stake: str | None = None


class Ward(WardBase, table=True):
    __tablename__ = "wards"
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_naive_now)


class WardUpdate(SQLModel):
    name: str | None = None
    stake: str | None = None


class WardPublic(WardBase):
    id: int
