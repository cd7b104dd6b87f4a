from typing import Annotated, Literal, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
import uuid

from backoffice.database import get_db
from backoffice.auth import dependencies
from backoffice.auth.dependencies import can_access_gym
from backoffice.core.exceptions import ForbiddenError, NotFoundError
from backoffice.core.responses import StandardResponse
from backoffice.models.audit import MembershipTransfer
from backoffice.models.tenant import Staff
from backoffice.services.membership_store import MembershipStore
from backoffice.services.transfer_service import NewMemberInput, TransferCommand, TransferService

router = APIRouter()


class NewMemberPayload(BaseModel):
    name: str
    phone: str


class TransferRequest(BaseModel):
    from_membership_id: uuid.UUID | None = None
    to_member_id: uuid.UUID | None = None
    new_member: NewMemberPayload | None = None
    transfer_sessions: int | None = None
    transfer_date: date | None = None
    transfer_reason: str | None = None
    transfer_fee: float | None = None
    payment_method: str | None = None


def _transfer_row(transfer: MembershipTransfer) -> dict:
    return {
        "id": str(transfer.id),
        "from_member_id": str(transfer.from_member_id),
        "from_member_name": transfer.from_member.name if transfer.from_member else None,
        "from_membership_id": str(transfer.from_membership_id),
        "from_membership_name": transfer.from_membership.name if transfer.from_membership else None,
        "to_member_id": str(transfer.to_member_id),
        "to_member_name": transfer.to_member.name if transfer.to_member else None,
        "to_membership_id": str(transfer.to_membership_id),
        "transferred_sessions": transfer.transferred_sessions,
        "transfer_fee": float(transfer.transfer_fee or 0),
        "payment_method": transfer.payment_method,
        "transfer_reason": transfer.transfer_reason,
        "transfer_date": transfer.transfer_date.isoformat(),
        "original_membership_data": transfer.original_membership_data,
        "created_by": str(transfer.created_by) if transfer.created_by else None,
        "created_by_name": transfer.created_by_staff.name if transfer.created_by_staff else None,
        "created_at": transfer.created_at.isoformat(),
    }


@router.post("/{from_member_id}/membership/transfer", response_model=StandardResponse)
async def transfer_membership(
    from_member_id: uuid.UUID,
    data: TransferRequest,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Move remaining sessions of a membership to an existing or a brand-new member."""
    command = TransferCommand(
        from_member_id=from_member_id,
        from_membership_id=data.from_membership_id,
        to_member_id=data.to_member_id,
        new_member=NewMemberInput(name=data.new_member.name, phone=data.new_member.phone) if data.new_member else None,
        transfer_sessions=data.transfer_sessions,
        transfer_date=data.transfer_date,
        transfer_reason=data.transfer_reason,
        transfer_fee=data.transfer_fee,
        payment_method=data.payment_method,
    )
    result = await TransferService.transfer(db, command, staff)
    return StandardResponse(data=result, message="Membership transferred")


@router.get("/{member_id}/membership/transfer")
async def list_membership_transfers(
    member_id: uuid.UUID,
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
    db: Annotated[AsyncSession, Depends(get_db)],
    membership_id: Optional[uuid.UUID] = Query(None, alias="membershipId"),
    direction: Optional[Literal["from", "to"]] = Query(None),
):
    member = await MembershipStore.get_member(db, member_id)
    if member is None:
        raise NotFoundError("회원을 찾을 수 없습니다.")
    if not can_access_gym(staff, member.gym_id, member.company_id):
        raise ForbiddenError("접근 권한이 없습니다.")

    transfers = await TransferService.list_transfers(
        db, member.id, direction=direction, membership_id=membership_id
    )
    return {"transfers": [_transfer_row(t) for t in transfers]}
