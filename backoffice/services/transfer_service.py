from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
from typing import Literal
import uuid

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.auth.dependencies import can_access_gym
from backoffice.config import settings
from backoffice.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from backoffice.database import atomic
from backoffice.models.audit import MembershipTransfer
from backoffice.models.enums import ActivityAction, MemberStatus, MembershipStatus
from backoffice.models.finance import SalesType
from backoffice.models.member import Member, Membership
from backoffice.models.tenant import Staff
from backoffice.services.activity_log_service import ActivityLogService
from backoffice.services.member_status_service import MemberStatusService
from backoffice.services.membership_store import MembershipStore, calculate_end_date
from backoffice.services.payment_service import PaymentService, round_money

logger = logging.getLogger(__name__)

TransferAction = Literal["created", "merged"]
TransferDirection = Literal["from", "to"]


@dataclass
class NewMemberInput:
    name: str
    phone: str


@dataclass
class TransferCommand:
    from_member_id: uuid.UUID
    from_membership_id: uuid.UUID | None
    transfer_sessions: int | None
    transfer_date: date | None
    to_member_id: uuid.UUID | None = None
    new_member: NewMemberInput | None = None
    transfer_reason: str | None = None
    transfer_fee: float | Decimal | None = None
    payment_method: str | None = None


def _validate_command(command: TransferCommand) -> None:
    if not command.from_membership_id:
        raise BadRequestError("양도할 회원권 ID가 필요합니다.")
    if not command.to_member_id and not command.new_member:
        raise BadRequestError("양수인 정보가 필요합니다.")
    if not command.to_member_id and command.new_member is not None:
        if not command.new_member.name.strip() or not command.new_member.phone.strip():
            raise BadRequestError("신규 양수인의 이름과 연락처가 필요합니다.")
    if command.transfer_sessions is None or command.transfer_sessions < 1:
        raise BadRequestError("양도 횟수는 1회 이상이어야 합니다.")
    if command.transfer_date is None:
        raise BadRequestError("양도 시작일이 필요합니다.")
    if command.transfer_fee is not None and command.transfer_fee < 0:
        raise BadRequestError("양도 수수료는 0원 이상이어야 합니다.")
    if command.to_member_id and command.to_member_id == command.from_member_id:
        raise BadRequestError("자기 자신에게는 양도할 수 없습니다.")


def _snapshot(membership: Membership, membership_type: str) -> dict:
    return {
        "name": membership.name,
        "membership_type": membership_type,
        "total_sessions": membership.total_sessions,
        "used_sessions": membership.used_sessions,
        "remaining_sessions": membership.remaining_sessions,
        "start_date": membership.start_date.isoformat() if membership.start_date else None,
        "end_date": membership.end_date.isoformat() if membership.end_date else None,
    }


class TransferService:
    @staticmethod
    async def _resolve_existing_target(db: AsyncSession, to_member_id: uuid.UUID, from_member: Member) -> Member:
        to_member = await MembershipStore.get_member(db, to_member_id)
        if to_member is None:
            raise NotFoundError("양수인 회원을 찾을 수 없습니다.")
        if to_member.gym_id != from_member.gym_id:
            raise BadRequestError("같은 지점의 회원에게만 양도할 수 있습니다.")
        return to_member

    @staticmethod
    async def _create_target(db: AsyncSession, new_member: NewMemberInput, from_member: Member, staff: Staff) -> Member:
        to_member = Member(
            company_id=from_member.company_id,
            gym_id=from_member.gym_id,
            name=new_member.name.strip(),
            phone=new_member.phone.strip(),
            status=MemberStatus.ACTIVE,
        )
        db.add(to_member)
        await db.flush()
        await ActivityLogService.record(
            db,
            gym_id=from_member.gym_id,
            company_id=from_member.company_id,
            member_id=to_member.id,
            action_type=ActivityAction.MEMBER_CREATED,
            description=f"신규 회원 등록 (양도 수령): {to_member.name}",
            changes={"after": {"id": to_member.id, "name": to_member.name, "phone": to_member.phone, "status": "active"}},
            created_by=staff.id,
        )
        return to_member

    @staticmethod
    async def transfer(db: AsyncSession, command: TransferCommand, staff: Staff) -> dict:
        """Move unused session credits from one member's membership to another member.

        Validation happens before any write; every write happens inside one
        transaction, so a failure at any step leaves no partial transfer behind.
        """
        _validate_command(command)
        sessions = int(command.transfer_sessions)
        transfer_date = command.transfer_date
        fee = round_money(command.transfer_fee or 0)

        async with atomic(db):
            from_member = await MembershipStore.get_member(db, command.from_member_id)
            if from_member is None:
                raise NotFoundError("양도자 회원을 찾을 수 없습니다.")
            if not can_access_gym(staff, from_member.gym_id, from_member.company_id):
                raise ForbiddenError("접근 권한이 없습니다.")

            source = await MembershipStore.get_membership(
                db, command.from_membership_id, from_member.id, for_update=True
            )
            if source is None:
                raise NotFoundError("회원권을 찾을 수 없습니다.")
            if source.status != MembershipStatus.ACTIVE:
                raise BadRequestError("활성 상태의 회원권만 양도할 수 있습니다.")
            if source.total_sessions is None:
                raise BadRequestError("횟수제 회원권만 양도할 수 있습니다.")

            remaining = source.remaining_sessions
            if sessions > remaining:
                raise BadRequestError(
                    f"양도 횟수({sessions}회)가 잔여 횟수({remaining}회)를 초과합니다."
                )

            if command.to_member_id:
                to_member = await TransferService._resolve_existing_target(db, command.to_member_id, from_member)
                is_new = False
            else:
                to_member = await TransferService._create_target(db, command.new_member, from_member, staff)
                is_new = True

            membership_type = source.membership_type or settings.DEFAULT_MEMBERSHIP_TYPE
            snapshot = _snapshot(source, membership_type)
            source_total_before = source.total_sessions
            transfer_end_date = calculate_end_date(transfer_date, sessions)

            # Merge into the recipient's compatible membership, or open a new one.
            existing = await MembershipStore.find_active_membership_of_type(db, to_member.id, membership_type)
            action: TransferAction
            if existing is not None:
                merged_end_date = (
                    existing.end_date
                    if existing.end_date and existing.end_date > transfer_end_date
                    else transfer_end_date
                )
                await MembershipStore.add_total_sessions(db, existing.id, sessions, merged_end_date)
                await db.refresh(existing)
                target = existing
                action = "merged"
            else:
                target = Membership(
                    gym_id=from_member.gym_id,
                    member_id=to_member.id,
                    name=source.name,
                    membership_type=membership_type,
                    total_sessions=sessions,
                    used_sessions=0,
                    start_date=transfer_date,
                    end_date=transfer_end_date,
                    status=MembershipStatus.ACTIVE,
                )
                db.add(target)
                await db.flush()
                action = "created"

            if not await MembershipStore.deduct_total_sessions(db, source.id, sessions):
                raise ConflictError("다른 요청으로 잔여 횟수가 변경되었습니다. 다시 시도해 주세요.")
            await db.refresh(source)

            if await MembershipStore.count_active_memberships(db, from_member.id) == 0:
                await MemberStatusService.set_status(db, from_member.id, MemberStatus.EXPIRED)
            await MemberStatusService.set_status(db, to_member.id, MemberStatus.ACTIVE)

            transfer_record = MembershipTransfer(
                gym_id=from_member.gym_id,
                company_id=from_member.company_id,
                from_member_id=from_member.id,
                from_membership_id=source.id,
                to_member_id=to_member.id,
                to_membership_id=target.id,
                transferred_sessions=sessions,
                transfer_fee=fee,
                payment_method=command.payment_method,
                transfer_reason=command.transfer_reason,
                transfer_date=transfer_date,
                original_membership_data=snapshot,
                created_by=staff.id,
            )
            db.add(transfer_record)
            await db.flush()

            await ActivityLogService.record(
                db,
                gym_id=from_member.gym_id,
                company_id=from_member.company_id,
                member_id=from_member.id,
                membership_id=source.id,
                action_type=ActivityAction.MEMBERSHIP_TRANSFERRED,
                description=f'회원권 "{source.name}" {sessions}회 양도 → {to_member.name}',
                changes={
                    "before": {"total_sessions": source_total_before, "remaining_sessions": remaining},
                    "after": {
                        "total_sessions": source.total_sessions,
                        "remaining_sessions": source.remaining_sessions,
                        "transferred_to": to_member.name,
                        "transferred_sessions": sessions,
                    },
                },
                created_by=staff.id,
            )

            if action == "merged":
                target_description = (
                    f'회원권 "{source.name}" {sessions}회 양도받음 (기존 회원권에 병합) ← {from_member.name}'
                )
            else:
                target_description = f'회원권 "{source.name}" {sessions}회 양도받음 ← {from_member.name}'
            await ActivityLogService.record(
                db,
                gym_id=from_member.gym_id,
                company_id=from_member.company_id,
                member_id=to_member.id,
                membership_id=target.id,
                action_type=(
                    ActivityAction.MEMBERSHIP_UPDATED if action == "merged" else ActivityAction.MEMBERSHIP_CREATED
                ),
                description=target_description,
                changes={
                    "transfer_from": from_member.name,
                    "transferred_sessions": sessions,
                    "merged": action == "merged",
                },
                created_by=staff.id,
            )

            if fee > 0:
                await PaymentService.record_payment(
                    db,
                    gym_id=from_member.gym_id,
                    company_id=from_member.company_id,
                    member_id=to_member.id,
                    membership_id=target.id,
                    registration_type=SalesType.TRANSFER_FEE,
                    amount=fee,
                    method=command.payment_method,
                    memo=f"{from_member.name}님으로부터 회원권 양도 수수료",
                )
                await PaymentService.record_sale(
                    db,
                    gym_id=from_member.gym_id,
                    company_id=from_member.company_id,
                    member_id=to_member.id,
                    sales_type=SalesType.TRANSFER_FEE,
                    amount=fee,
                    method=command.payment_method,
                    staff_id=staff.id,
                    memo=f"{from_member.name} → {to_member.name} 회원권 양도",
                )

            result = {
                "from_member": {
                    "id": str(from_member.id),
                    "name": from_member.name,
                    "remaining_sessions": source.remaining_sessions,
                },
                "to_member": {
                    "id": str(to_member.id),
                    "name": to_member.name,
                    "is_new": is_new,
                },
                "transfer": {
                    "sessions": sessions,
                    "date": transfer_date.isoformat(),
                    "fee": float(fee),
                    "action": action,
                },
            }

        logger.info(
            "Membership transfer complete: from_membership=%s to_membership=%s sessions=%s action=%s",
            source.id,
            target.id,
            sessions,
            action,
        )
        return result

    @staticmethod
    async def list_transfers(
        db: AsyncSession,
        member_id: uuid.UUID,
        *,
        direction: TransferDirection | None = None,
        membership_id: uuid.UUID | None = None,
    ) -> list[MembershipTransfer]:
        stmt = (
            select(MembershipTransfer)
            .options(
                selectinload(MembershipTransfer.from_member),
                selectinload(MembershipTransfer.to_member),
                selectinload(MembershipTransfer.from_membership),
                selectinload(MembershipTransfer.created_by_staff),
            )
            .order_by(MembershipTransfer.created_at.desc())
        )
        if direction == "from":
            stmt = stmt.where(MembershipTransfer.from_member_id == member_id)
        elif direction == "to":
            stmt = stmt.where(MembershipTransfer.to_member_id == member_id)
        else:
            stmt = stmt.where(
                or_(MembershipTransfer.from_member_id == member_id, MembershipTransfer.to_member_id == member_id)
            )
        if membership_id:
            stmt = stmt.where(
                or_(
                    MembershipTransfer.from_membership_id == membership_id,
                    MembershipTransfer.to_membership_id == membership_id,
                )
            )

        try:
            result = await db.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError:
            logger.warning("Transfer history query failed for member %s", member_id, exc_info=True)
            await db.rollback()
            return []
