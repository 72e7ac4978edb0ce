from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_secretary, get_session, get_staff_user
from app.models.interview_type import InterviewTypePublic
from app.models.user import User
from app.models.ward import WardPublic, WardUpdate
from app.services.ward_service import get_ward, list_active_interview_types, update_ward

router = APIRouter(prefix="/ward", tags=["ward"])


@router.get("", response_model=WardPublic)
async def my_ward(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_staff_user),
) -> WardPublic:
    ward = await get_ward(session, current_user.ward_id)
    return WardPublic.model_validate(ward, from_attributes=True)


@router.put("", response_model=WardPublic)
async def edit_ward(
    body: WardUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_secretary),
) -> WardPublic:
    ward = await update_ward(session, current_user.ward_id, body)
    return WardPublic.model_validate(ward, from_attributes=True)


@router.get("/interview-types", response_model=list[InterviewTypePublic])
async def interview_types(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_staff_user),
) -> list[InterviewTypePublic]:
    types = await list_active_interview_types(session, current_user.ward_id)
    return [InterviewTypePublic.model_validate(t, from_attributes=True) for t in types]
