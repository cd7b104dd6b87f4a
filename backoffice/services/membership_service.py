from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import can_access_gym
from backoffice.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from backoffice.database import atomic
from backoffice.models.enums import ActivityAction, MemberStatus, MembershipStatus
from backoffice.models.finance import SalesType
from backoffice.models.member import Member, Membership, MembershipHold
from backoffice.models.tenant import Staff
from backoffice.services.activity_log_service import ActivityLogService
from backoffice.services.member_status_service import MemberStatusService
from backoffice.services.membership_store import MembershipStore, calculate_end_date
from backoffice.services.payment_service import PaymentService
from backoffice.services.timezone_service import today_in_gym_tz

logger = logging.getLogger(__name__)

TRACKED_FIELDS = ("name", "start_date", "end_date", "total_sessions", "used_sessions")
FIELD_LABELS = {
    "name": "이름",
    "start_date": "시작일",
    "end_date": "종료일",
    "total_sessions": "총 횟수",
    "used_sessions": "사용 횟수",
}


@dataclass
class MembershipDraft:
    name: str
    membership_type: str | None = None
    total_sessions: int | None = None
    used_sessions: int = 0
    start_date: date | None = None
    end_date: date | None = None
    amount: float | Decimal | None = None
    payment_method: str | None = None
    registration_type: str = "신규"
    memo: str | None = None


def validate_counters(
    total_sessions: int | None,
    used_sessions: int,
    start_date: date | None,
    end_date: date | None,
) -> None:
    if total_sessions is not None and total_sessions < 0:
        raise BadRequestError("총 횟수는 0회 이상이어야 합니다.")
    if used_sessions < 0:
        raise BadRequestError("사용 횟수는 0회 이상이어야 합니다.")
    if total_sessions is not None and used_sessions > total_sessions:
        raise BadRequestError(
            f"사용 횟수({used_sessions}회)가 총 횟수({total_sessions}회)를 초과할 수 없습니다."
        )
    if start_date and end_date and end_date < start_date:
        raise BadRequestError("종료일은 시작일 이후여야 합니다.")


def _snapshot(membership: Membership) -> dict:
    return {field: getattr(membership, field) for field in TRACKED_FIELDS}


def _describe(value) -> str:
    if value is None:
        return "-"
    return str(value)


class MembershipService:
    @staticmethod
    async def get_accessible_member(db: AsyncSession, member_id: uuid.UUID, staff: Staff) -> Member:
        member = await MembershipStore.get_member(db, member_id)
        if member is None:
            raise NotFoundError("회원을 찾을 수 없습니다.")
        if not can_access_gym(staff, member.gym_id, member.company_id):
            raise ForbiddenError("접근 권한이 없습니다.")
        return member

    @staticmethod
    async def _get_membership_or_404(db: AsyncSession, membership_id: uuid.UUID, member_id: uuid.UUID) -> Membership:
        membership = await MembershipStore.get_membership(db, membership_id, member_id)
        if membership is None:
            raise NotFoundError("회원권을 찾을 수 없습니다.")
        return membership

    @staticmethod
    async def create_membership(db: AsyncSession, member_id: uuid.UUID, draft: MembershipDraft, staff: Staff) -> Membership:
        if not draft.name or not draft.name.strip():
            raise BadRequestError("회원권 이름이 필요합니다.")
        start_date = draft.start_date or today_in_gym_tz()
        end_date = draft.end_date
        if end_date is None and draft.total_sessions:
            end_date = calculate_end_date(start_date, draft.total_sessions)
        validate_counters(draft.total_sessions, draft.used_sessions, start_date, end_date)
        if draft.amount is not None and draft.amount < 0:
            raise BadRequestError("결제 금액은 0원 이상이어야 합니다.")

        async with atomic(db):
            member = await MembershipService.get_accessible_member(db, member_id, staff)
            membership = Membership(
                gym_id=member.gym_id,
                member_id=member.id,
                name=draft.name.strip(),
                membership_type=draft.membership_type,
                total_sessions=draft.total_sessions,
                used_sessions=draft.used_sessions,
                start_date=start_date,
                end_date=end_date,
                status=MembershipStatus.ACTIVE,
            )
            db.add(membership)
            await db.flush()

            if member.status != MemberStatus.PAUSED:
                await MemberStatusService.set_status(db, member.id, MemberStatus.ACTIVE)

            await ActivityLogService.record(
                db,
                gym_id=member.gym_id,
                company_id=member.company_id,
                member_id=member.id,
                membership_id=membership.id,
                action_type=ActivityAction.MEMBERSHIP_CREATED,
                description=f'회원권 "{membership.name}" 등록',
                changes={"after": _snapshot(membership)},
                created_by=staff.id,
            )

            if draft.amount:
                await PaymentService.record_payment(
                    db,
                    gym_id=member.gym_id,
                    company_id=member.company_id,
                    member_id=member.id,
                    membership_id=membership.id,
                    registration_type=draft.registration_type,
                    amount=draft.amount,
                    method=draft.payment_method,
                    memo=draft.memo,
                )
                await PaymentService.record_sale(
                    db,
                    gym_id=member.gym_id,
                    company_id=member.company_id,
                    member_id=member.id,
                    sales_type=SalesType.MEMBERSHIP,
                    amount=draft.amount,
                    method=draft.payment_method,
                    staff_id=staff.id,
                    memo=f"{member.name} {membership.name} ({draft.registration_type})",
                )

        logger.info("Membership created: member=%s membership=%s", member.id, membership.id)
        return membership

    @staticmethod
    async def update_membership(
        db: AsyncSession,
        member_id: uuid.UUID,
        membership_id: uuid.UUID,
        changes: dict,
        staff: Staff,
    ) -> Membership:
        async with atomic(db):
            member = await MembershipService.get_accessible_member(db, member_id, staff)
            membership = await MembershipService._get_membership_or_404(db, membership_id, member.id)
            before = _snapshot(membership)
            after = {**before, **{k: v for k, v in changes.items() if k in TRACKED_FIELDS}}
            if after["name"] is None or not after["name"].strip():
                raise BadRequestError("회원권 이름이 필요합니다.")
            if after["used_sessions"] is None:
                raise BadRequestError("사용 횟수를 입력해주세요.")
            validate_counters(
                after["total_sessions"],
                after["used_sessions"],
                after["start_date"],
                after["end_date"],
            )

            diffs = [
                f"{FIELD_LABELS[field]}: {_describe(before[field])} → {_describe(after[field])}"
                for field in TRACKED_FIELDS
                if before[field] != after[field]
            ]
            for field in TRACKED_FIELDS:
                setattr(membership, field, after[field])
            await db.flush()

            if diffs:
                await ActivityLogService.record(
                    db,
                    gym_id=member.gym_id,
                    company_id=member.company_id,
                    member_id=member.id,
                    membership_id=membership.id,
                    action_type=ActivityAction.MEMBERSHIP_UPDATED,
                    description=f'회원권 "{membership.name}" 수정: {", ".join(diffs)}',
                    changes={"before": before, "after": after},
                    created_by=staff.id,
                )
        return membership

    @staticmethod
    async def delete_membership(db: AsyncSession, member_id: uuid.UUID, membership_id: uuid.UUID, staff: Staff) -> None:
        async with atomic(db):
            member = await MembershipService.get_accessible_member(db, member_id, staff)
            membership = await MembershipService._get_membership_or_404(db, membership_id, member.id)
            before = _snapshot(membership)
            name = membership.name
            await db.delete(membership)
            await db.flush()

            await ActivityLogService.record(
                db,
                gym_id=member.gym_id,
                company_id=member.company_id,
                member_id=member.id,
                action_type=ActivityAction.MEMBERSHIP_DELETED,
                description=f'회원권 "{name}" 삭제',
                changes={"before": before, "after": {}},
                created_by=staff.id,
            )
        logger.info("Membership deleted: member=%s membership=%s", member_id, membership_id)

    @staticmethod
    async def hold_membership(
        db: AsyncSession,
        member_id: uuid.UUID,
        membership_id: uuid.UUID,
        *,
        hold_days: int | None,
        hold_start_date: date | None,
        hold_reason: str | None,
        staff: Staff,
    ) -> MembershipHold:
        """Pause a membership: push its end date back and mark the member paused."""
        if not hold_days or hold_days < 1:
            raise BadRequestError("홀딩 기간은 1일 이상이어야 합니다.")

        async with atomic(db):
            member = await MembershipService.get_accessible_member(db, member_id, staff)
            membership = await MembershipService._get_membership_or_404(db, membership_id, member.id)
            if membership.status != MembershipStatus.ACTIVE:
                raise BadRequestError("활성 상태의 회원권만 홀딩할 수 있습니다.")

            today = today_in_gym_tz()
            original_end_date = membership.end_date
            new_end_date = (original_end_date or today) + timedelta(days=hold_days)
            hold_start = hold_start_date or today
            hold_end = hold_start + timedelta(days=hold_days - 1)

            membership.end_date = new_end_date
            await MemberStatusService.set_status(db, member.id, MemberStatus.PAUSED)

            hold = MembershipHold(
                gym_id=member.gym_id,
                company_id=member.company_id,
                member_id=member.id,
                membership_id=membership.id,
                hold_days=hold_days,
                hold_start_date=hold_start,
                hold_end_date=hold_end,
                hold_reason=hold_reason,
                original_end_date=original_end_date,
                new_end_date=new_end_date,
                created_by=staff.id,
            )
            db.add(hold)
            await db.flush()

            await ActivityLogService.record(
                db,
                gym_id=member.gym_id,
                company_id=member.company_id,
                member_id=member.id,
                membership_id=membership.id,
                action_type=ActivityAction.MEMBERSHIP_HOLD,
                description=(
                    f'회원권 "{membership.name}" 홀딩: {hold_days}일 ({hold_start} ~ {hold_end}), '
                    f"종료일 {_describe(original_end_date)} → {new_end_date}"
                ),
                changes={
                    "before": {"end_date": original_end_date},
                    "after": {
                        "end_date": new_end_date,
                        "hold_days": hold_days,
                        "hold_start": hold_start,
                        "hold_end": hold_end,
                    },
                },
                created_by=staff.id,
            )
        return hold

    @staticmethod
    async def list_holds(
        db: AsyncSession,
        member_id: uuid.UUID,
        membership_id: uuid.UUID | None = None,
    ) -> list[MembershipHold]:
        stmt = (
            select(MembershipHold)
            .where(MembershipHold.member_id == member_id)
            .order_by(MembershipHold.created_at.desc())
        )
        if membership_id:
            stmt = stmt.where(MembershipHold.membership_id == membership_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
