from sqlmodel import Field, SQLModel


class BishopricMember(SQLModel, table=True):
    __tablename__ = "bishopric_members"
    id: int | None = Field(default=None, primary_key=True)
    ward_id: int = Field(foreign_key="wards.id", index=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    position: str  # e.g. "Bishop", "First Counselor"
    # Calendar events whose title contains this token are availability blocks
    availability_code: str
    is_active: bool = True
