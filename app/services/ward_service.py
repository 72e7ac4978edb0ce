from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.interview_type import DEFAULT_INTERVIEW_TYPES, InterviewType
from app.models.user import User, UserRole
from app.models.ward import Ward, WardUpdate


async def get_ward(session: AsyncSession, ward_id: int) -> Ward:
    result = await session.execute(select(Ward).where(Ward.id == ward_id))
    ward = result.scalar_one_or_none()
    if not ward:
        raise NotFoundError(f"Ward {ward_id} not found")
    return ward


async def list_active_interview_types(session: AsyncSession, ward_id: int) -> list[InterviewType]:
    result = await session.execute(
        select(InterviewType)
        .where(
            InterviewType.ward_id == ward_id,
            InterviewType.is_active == True,  # noqa: E712
        )
        .order_by(InterviewType.name)
    )
    return list(result.scalars().all())


async def update_ward(session: AsyncSession, ward_id: int, data: WardUpdate) -> Ward:
    ward = await get_ward(session, ward_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(ward, key, value)
    session.add(ward)
    await session.flush()
    await session.refresh(ward)
    return ward


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def register_ward(
    session: AsyncSession,
    ward_name: str,
    stake_name: str | None,
    secretary_email: str,
    secretary_name: str | None = None,
) -> tuple[Ward, User]:
    """Create a ward, its executive secretary, and the default interview types."""
    if not ward_name.strip() or not secretary_email.strip():
        raise ValidationError("Ward name and executive secretary email are required")
    if await get_user_by_email(session, secretary_email):
        raise ValidationError(f"A user with email {secretary_email} already exists")

    ward = Ward(name=ward_name.strip(), stake=(stake_name or "").strip() or None)
    session.add(ward)
    await session.flush()
    await session.refresh(ward)

    user = User(
        email=secretary_email.strip(),
        name=secretary_name,
        role=UserRole.EXECUTIVE_SECRETARY.value,
        ward_id=ward.id,
    )
    session.add(user)
    for data in DEFAULT_INTERVIEW_TYPES:
        session.add(InterviewType(ward_id=ward.id, **data))
    await session.flush()
    await session.refresh(user)
    return ward, user
