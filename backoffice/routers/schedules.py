from typing import Annotated
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
import uuid

from backoffice.database import get_db, atomic
from backoffice.auth import dependencies
from backoffice.auth.dependencies import GymScope
from backoffice.core.exceptions import BadRequestError, NotFoundError
from backoffice.core.responses import StandardResponse
from backoffice.models.enums import ScheduleStatus
from backoffice.models.schedule import Schedule
from backoffice.models.tenant import Staff
from backoffice.services.membership_store import MembershipStore
from backoffice.services.session_accounting import SessionAccountingService

router = APIRouter()


class ScheduleCreate(BaseModel):
    member_id: uuid.UUID | None = None
    member_name: str | None = None
    staff_id: uuid.UUID | None = None
    type: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime


class ScheduleStatusUpdate(BaseModel):
    status: ScheduleStatus


class ScheduleResponse(BaseModel):
    id: uuid.UUID
    gym_id: uuid.UUID
    staff_id: uuid.UUID
    member_id: uuid.UUID | None = None
    member_name: str | None = None
    type: str
    status: ScheduleStatus
    start_time: datetime
    end_time: datetime
    membership_id: uuid.UUID | None = None

    class Config:
        from_attributes = True


@router.post("", response_model=StandardResponse[ScheduleResponse], status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleCreate,
    scope: Annotated[GymScope, Depends(dependencies.get_gym_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Book a reserved session for a member in the scoped gym."""
    if data.end_time <= data.start_time:
        raise BadRequestError("종료 시간은 시작 시간 이후여야 합니다.")

    member_name = data.member_name
    if data.member_id:
        member = await MembershipStore.get_member(db, data.member_id)
        if member is None or member.gym_id != scope.gym_id:
            raise NotFoundError("회원을 찾을 수 없습니다.")
        member_name = member_name or member.name

    async with atomic(db):
        schedule = Schedule(
            gym_id=scope.gym_id,
            staff_id=data.staff_id or scope.staff.id,
            member_id=data.member_id,
            member_name=member_name,
            type=data.type.lower(),
            status=ScheduleStatus.RESERVED,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        db.add(schedule)
        await db.flush()
    return StandardResponse(data=ScheduleResponse.model_validate(schedule), message="Schedule created")


@router.post("/{schedule_id}/status", response_model=StandardResponse[ScheduleResponse])
async def update_schedule_status(
    schedule_id: uuid.UUID,
    data: ScheduleStatusUpdate,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Change a session's status; completed and deducted no-shows consume a credit."""
    schedule = await SessionAccountingService.apply_status_change(db, schedule_id, data.status, staff)
    return StandardResponse(data=ScheduleResponse.model_validate(schedule), message="Schedule updated")
