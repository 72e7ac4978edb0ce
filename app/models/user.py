from enum import Enum

from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    EXECUTIVE_SECRETARY = "EXECUTIVE_SECRETARY"
    BISHOPRIC = "BISHOPRIC"
    MEMBER = "MEMBER"


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    name: str | None = None
    role: str = Field(default=UserRole.MEMBER.value)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    ward_id: int | None = Field(default=None, foreign_key="wards.id", index=True)

    @property
    def display_name(self) -> str:
        return self.name or self.email


class UserPublic(SQLModel):
    id: int
    email: str
    name: str | None = None
    role: str
    ward_id: int | None = None
