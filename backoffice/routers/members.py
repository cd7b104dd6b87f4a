from dataclasses import asdict
from typing import Annotated, Optional
from datetime import date, datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from pydantic import BaseModel, Field
import uuid

from backoffice.config import settings
from backoffice.database import get_db, atomic
from backoffice.auth import dependencies
from backoffice.auth.dependencies import GymScope
from backoffice.core.exceptions import BadRequestError
from backoffice.core.responses import StandardResponse
from backoffice.models.enums import ActivityAction, MemberStatus, MembershipStatus
from backoffice.models.member import Member, Membership
from backoffice.models.tenant import Staff
from backoffice.services.activity_log_service import ActivityLogService
from backoffice.services.member_status_service import MemberStatusService, resolve_active_membership
from backoffice.services.membership_service import MembershipService
from backoffice.services.membership_store import MembershipStore
from backoffice.services.payment_service import PaymentService
from backoffice.services.session_accounting import SessionAccountingService
from backoffice.services.timezone_service import today_in_gym_tz

router = APIRouter()


class MemberCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str | None = None
    birth_date: date | None = None
    gender: str | None = None
    trainer_id: uuid.UUID | None = None
    memo: str | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    body_fat_percent: float | None = None
    skeletal_muscle_kg: float | None = None


class MembershipResponse(BaseModel):
    id: uuid.UUID
    name: str
    membership_type: str | None = None
    total_sessions: int | None = None
    used_sessions: int
    remaining_sessions: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: MembershipStatus
    created_at: datetime

    class Config:
        from_attributes = True


class MemberResponse(BaseModel):
    id: uuid.UUID
    gym_id: uuid.UUID
    company_id: uuid.UUID
    name: str
    phone: str | None = None
    birth_date: date | None = None
    gender: str | None = None
    status: MemberStatus
    trainer_id: uuid.UUID | None = None
    memo: str | None = None
    created_at: datetime
    active_membership: MembershipResponse | None = None

    class Config:
        from_attributes = True


class MemberDetailResponse(MemberResponse):
    height_cm: float | None = None
    weight_kg: float | None = None
    body_fat_percent: float | None = None
    skeletal_muscle_kg: float | None = None
    memberships: list[MembershipResponse] = []


class ActivityLogResponse(BaseModel):
    id: uuid.UUID
    membership_id: uuid.UUID | None = None
    action_type: str
    description: str
    changes: dict | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: uuid.UUID
    membership_id: uuid.UUID | None = None
    registration_type: str
    amount: float
    method: str
    memo: str | None = None
    paid_at: datetime

    class Config:
        from_attributes = True


def _member_payload(member: Member, active: Membership | None) -> MemberResponse:
    payload = MemberResponse.model_validate(member)
    if active is not None:
        payload.active_membership = MembershipResponse.model_validate(active)
    return payload


@router.get("", response_model=StandardResponse[list[MemberResponse]])
async def list_members(
    scope: Annotated[GymScope, Depends(dependencies.get_gym_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Optional[MemberStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, min_length=1),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List a gym's members. Expired statuses are brought up to date on the way."""
    stmt = select(Member).where(Member.gym_id == scope.gym_id)
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(or_(Member.name.ilike(pattern), Member.phone.ilike(pattern)))
    stmt = stmt.order_by(Member.created_at.desc()).offset(offset).limit(limit)
    members = list((await db.execute(stmt)).scalars().all())

    async with atomic(db):
        memberships = await MembershipStore.list_memberships_for_members(db, [m.id for m in members])
        states = await MemberStatusService.sync_member_statuses(db, members, memberships, today_in_gym_tz())

    data = []
    for member in members:
        state = states[member.id]
        if status_filter and state.status != status_filter:
            continue
        data.append(_member_payload(member, state.active_membership))
    return StandardResponse(data=data)


@router.post("", response_model=StandardResponse[MemberResponse], status_code=status.HTTP_201_CREATED)
async def create_member(
    data: MemberCreate,
    scope: Annotated[GymScope, Depends(dependencies.get_gym_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    name = data.name.strip()
    if not name:
        raise BadRequestError("회원 이름이 필요합니다.")

    async with atomic(db):
        member = Member(
            company_id=scope.company_id,
            gym_id=scope.gym_id,
            status=MemberStatus.ACTIVE,
            **{**data.model_dump(), "name": name},
        )
        db.add(member)
        await db.flush()
        await ActivityLogService.record(
            db,
            gym_id=scope.gym_id,
            company_id=scope.company_id,
            member_id=member.id,
            action_type=ActivityAction.MEMBER_CREATED,
            description=f"신규 회원 등록: {member.name}",
            changes={"after": {"name": member.name, "phone": member.phone}},
            created_by=scope.staff.id,
        )
    return StandardResponse(data=_member_payload(member, None), message="Member created")


@router.get("/{member_id}", response_model=StandardResponse[MemberDetailResponse])
async def get_member(
    member_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    memberships = await MembershipStore.list_memberships(db, member.id)
    # Built from columns: the lazy relationship must not load under asyncio.
    columns = {column.key: getattr(member, column.key) for column in Member.__table__.columns}
    payload = MemberDetailResponse.model_validate(
        {**columns, "memberships": [MembershipResponse.model_validate(m) for m in memberships]}
    )
    active = resolve_active_membership(memberships)
    if active is not None:
        payload.active_membership = MembershipResponse.model_validate(active)
    return StandardResponse(data=payload)


@router.get("/{member_id}/activity-logs", response_model=StandardResponse[list[ActivityLogResponse]])
async def list_activity_logs(
    member_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=200),
):
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    logs = await ActivityLogService.list_for_member(db, member.id, limit=limit)
    return StandardResponse(data=[ActivityLogResponse.model_validate(log) for log in logs])


@router.get("/{member_id}/payments", response_model=StandardResponse[list[PaymentResponse]])
async def list_payments(
    member_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    payments = await PaymentService.list_member_payments(db, member.id)
    return StandardResponse(data=[PaymentResponse.model_validate(p) for p in payments])


@router.get("/{member_id}/sessions", response_model=StandardResponse)
async def get_session_summary(
    member_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
    membership_type: str = Query(settings.DEFAULT_MEMBERSHIP_TYPE, min_length=1),
):
    """Numbered session timeline and remaining-credit figures per membership of a type."""
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    summaries = await SessionAccountingService.summarize_member(db, member, membership_type, today_in_gym_tz())
    return StandardResponse(data=[asdict(summary) for summary in summaries])
