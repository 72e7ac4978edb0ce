from sqlmodel import Field, SQLModel


class InterviewTypeBishopricLink(SQLModel, table=True):
    """Which bishopric members may hold interviews of a given type."""

    __tablename__ = "interview_type_bishopric"
    interview_type_id: int = Field(foreign_key="interview_types.id", primary_key=True)
    bishopric_member_id: int = Field(foreign_key="bishopric_members.id", primary_key=True)


class InterviewTypeBase(SQLModel):
    name: str
    description: str | None = None
    duration: int = 30  # minutes
    is_active: bool = True


class InterviewType(InterviewTypeBase, table=True):
    __tablename__ = "interview_types"
    id: int | None = Field(default=None, primary_key=True)
    ward_id: int = Field(foreign_key="wards.id", index=True)


class InterviewTypePublic(InterviewTypeBase):
    id: int


DEFAULT_INTERVIEW_TYPES: list[dict] = [
    {"name": "Temple Recommend Interview", "description": "Temple recommend interview", "duration": 30},
    {"name": "Youth Interview", "description": "Annual youth interview", "duration": 20},
    {"name": "Calling Extension", "description": "Calling extension or new calling", "duration": 15},
    {"name": "General Interview", "description": "General pastoral interview", "duration": 30},
]
