from typing import Annotated
from datetime import date, datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
import uuid

from backoffice.database import get_db
from backoffice.auth import dependencies
from backoffice.core.exceptions import NotFoundError
from backoffice.core.responses import StandardResponse
from backoffice.models.tenant import Staff
from backoffice.routers.members import MembershipResponse
from backoffice.services.membership_service import MembershipDraft, MembershipService
from backoffice.services.membership_store import MembershipStore
from backoffice.services.session_accounting import SessionAccountingService

router = APIRouter()


class MembershipCreate(BaseModel):
    name: str = Field(..., min_length=1)
    membership_type: str | None = None
    total_sessions: int | None = Field(None, ge=0)
    used_sessions: int = Field(0, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    amount: float | None = Field(None, ge=0)
    payment_method: str | None = None
    registration_type: str = "신규"
    memo: str | None = None


class MembershipUpdate(BaseModel):
    name: str | None = None
    total_sessions: int | None = None
    used_sessions: int | None = None
    start_date: date | None = None
    end_date: date | None = None


class HoldCreate(BaseModel):
    hold_days: int = Field(..., ge=1)
    hold_start_date: date | None = None
    hold_reason: str | None = None


class HoldResponse(BaseModel):
    id: uuid.UUID
    membership_id: uuid.UUID
    hold_days: int
    hold_start_date: date
    hold_end_date: date
    hold_reason: str | None = None
    original_end_date: date | None = None
    new_end_date: date
    created_at: datetime

    class Config:
        from_attributes = True


@router.post(
    "/{member_id}/memberships",
    response_model=StandardResponse[MembershipResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_membership(
    member_id: uuid.UUID,
    data: MembershipCreate,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a membership for a member, optionally recording its payment."""
    membership = await MembershipService.create_membership(db, member_id, MembershipDraft(**data.model_dump()), staff)
    return StandardResponse(data=MembershipResponse.model_validate(membership), message="Membership created")


@router.put("/{member_id}/memberships/{membership_id}", response_model=StandardResponse[MembershipResponse])
async def update_membership(
    member_id: uuid.UUID,
    membership_id: uuid.UUID,
    data: MembershipUpdate,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    changes = data.model_dump(exclude_unset=True)
    membership = await MembershipService.update_membership(db, member_id, membership_id, changes, staff)
    return StandardResponse(data=MembershipResponse.model_validate(membership), message="Membership updated")


@router.delete("/{member_id}/memberships/{membership_id}", response_model=StandardResponse)
async def delete_membership(
    member_id: uuid.UUID,
    membership_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await MembershipService.delete_membership(db, member_id, membership_id, staff)
    return StandardResponse(message="Membership deleted")


@router.post(
    "/{member_id}/memberships/{membership_id}/hold",
    response_model=StandardResponse[HoldResponse],
    status_code=status.HTTP_201_CREATED,
)
async def hold_membership(
    member_id: uuid.UUID,
    membership_id: uuid.UUID,
    data: HoldCreate,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    hold = await MembershipService.hold_membership(
        db,
        member_id,
        membership_id,
        hold_days=data.hold_days,
        hold_start_date=data.hold_start_date,
        hold_reason=data.hold_reason,
        staff=staff,
    )
    return StandardResponse(data=HoldResponse.model_validate(hold), message="Membership on hold")


@router.get("/{member_id}/memberships/{membership_id}/holds", response_model=StandardResponse[list[HoldResponse]])
async def list_holds(
    member_id: uuid.UUID,
    membership_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    holds = await MembershipService.list_holds(db, member.id, membership_id)
    return StandardResponse(data=[HoldResponse.model_validate(h) for h in holds])


@router.post(
    "/{member_id}/memberships/{membership_id}/reconcile",
    response_model=StandardResponse[MembershipResponse],
)
async def reconcile_membership(
    member_id: uuid.UUID,
    membership_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Reset used_sessions to the count derived from the member's schedule."""
    member = await MembershipService.get_accessible_member(db, member_id, staff)
    membership = await MembershipStore.get_membership(db, membership_id, member.id)
    if membership is None:
        raise NotFoundError("회원권을 찾을 수 없습니다.")
    membership = await SessionAccountingService.reconcile_used_sessions(db, membership, member, staff)
    return StandardResponse(data=MembershipResponse.model_validate(membership), message="Membership reconciled")
