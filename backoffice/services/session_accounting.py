from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import logging
from typing import Sequence
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import can_access_gym, is_admin
from backoffice.core.exceptions import ForbiddenError, NotFoundError
from backoffice.database import atomic
from backoffice.models.enums import ActivityAction, ScheduleStatus
from backoffice.models.member import Member, Membership
from backoffice.models.schedule import Attendance, Schedule
from backoffice.models.tenant import Gym, Staff
from backoffice.services.activity_log_service import ActivityLogService
from backoffice.services.membership_store import MembershipStore
from backoffice.services.timezone_service import get_gym_timezone

logger = logging.getLogger(__name__)

# Shown as a numbered session on the member's timeline.
DISPLAY_COUNTED = frozenset({ScheduleStatus.COMPLETED, ScheduleStatus.NO_SHOW_DEDUCTED, ScheduleStatus.SERVICE})
# Consume a purchased credit. A plain no-show and a service session do not.
CREDIT_DEDUCTING = frozenset({ScheduleStatus.COMPLETED, ScheduleStatus.NO_SHOW_DEDUCTED})


def _as_status(value: ScheduleStatus | str) -> ScheduleStatus:
    return value if isinstance(value, ScheduleStatus) else ScheduleStatus(value)


def is_display_counted(status: ScheduleStatus | str) -> bool:
    return _as_status(status) in DISPLAY_COUNTED


def is_credit_deducting(status: ScheduleStatus | str) -> bool:
    return _as_status(status) in CREDIT_DEDUCTING


@dataclass
class NumberedSession:
    schedule_id: uuid.UUID
    start_time: datetime
    status: ScheduleStatus
    session_number: int | None
    is_not_completed: bool
    deducts_credit: bool


@dataclass
class SessionSummary:
    membership_id: uuid.UUID
    membership_type: str | None
    is_unlimited: bool
    total_sessions: int | None
    used_sessions: int
    deducted_count: int
    remaining_sessions: int | None
    schedule_remaining_sessions: int | None
    is_consistent: bool
    remaining_days: int | None
    is_past_end_date: bool
    sessions: list[NumberedSession] = field(default_factory=list)


def number_sessions(entries: Sequence[Schedule]) -> list[NumberedSession]:
    """Number a member's sessions of one type in start-time order.

    Counted entries get their ordinal among counted entries. Upcoming or
    non-counted entries get the number they would take next. Cancelled
    entries get no number at all.
    """
    numbered = []
    counted = 0
    for entry in sorted(entries, key=lambda s: s.start_time):
        status = _as_status(entry.status)
        if status == ScheduleStatus.CANCELLED:
            number, pending = None, False
        elif status in DISPLAY_COUNTED:
            counted += 1
            number, pending = counted, False
        else:
            number, pending = counted + 1, True
        numbered.append(
            NumberedSession(
                schedule_id=entry.id,
                start_time=entry.start_time,
                status=status,
                session_number=number,
                is_not_completed=pending,
                deducts_credit=status in CREDIT_DEDUCTING,
            )
        )
    return numbered


def _local_date(value: datetime) -> date:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_gym_timezone()).date()


def entries_for_membership(membership: Membership, entries: Sequence[Schedule]) -> list[Schedule]:
    """Keep the entries that belong to ``membership``.

    An entry charged to a membership belongs to that membership only. Entries
    with no recorded charge fall back to the membership's start/end window.
    """
    owned = []
    for entry in entries:
        if entry.membership_id is not None:
            if entry.membership_id == membership.id:
                owned.append(entry)
            continue
        day = _local_date(entry.start_time)
        if membership.start_date and day < membership.start_date:
            continue
        if membership.end_date and day > membership.end_date:
            continue
        owned.append(entry)
    return owned


def summarize(membership: Membership, entries: Sequence[Schedule], today: date) -> SessionSummary:
    numbered = number_sessions(entries)
    deducted = sum(1 for s in numbered if s.deducts_credit)
    total = membership.total_sessions
    used = membership.used_sessions or 0
    is_unlimited = total is None

    if is_unlimited:
        # Time-based passes have nothing to count down.
        for session in numbered:
            session.session_number = None
        remaining = schedule_remaining = None
        consistent = True
    else:
        remaining = total - used
        schedule_remaining = total - deducted
        consistent = used == deducted

    remaining_days = (membership.end_date - today).days if membership.end_date else None
    return SessionSummary(
        membership_id=membership.id,
        membership_type=membership.membership_type,
        is_unlimited=is_unlimited,
        total_sessions=total,
        used_sessions=used,
        deducted_count=deducted,
        remaining_sessions=remaining,
        schedule_remaining_sessions=schedule_remaining,
        is_consistent=consistent,
        remaining_days=remaining_days,
        is_past_end_date=remaining_days is not None and remaining_days < 0,
        sessions=numbered,
    )


class SessionAccountingService:
    @staticmethod
    async def list_member_schedules(
        db: AsyncSession,
        member_id: uuid.UUID,
        schedule_type: str,
    ) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(Schedule.member_id == member_id, func.lower(Schedule.type) == schedule_type.lower())
            .order_by(Schedule.start_time)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def summarize_member(
        db: AsyncSession,
        member: Member,
        membership_type: str,
        today: date,
    ) -> list[SessionSummary]:
        entries = await SessionAccountingService.list_member_schedules(db, member.id, membership_type)
        memberships = [
            m for m in await MembershipStore.list_memberships(db, member.id)
            if (m.membership_type or "").upper() == membership_type.upper()
        ]
        return [summarize(m, entries_for_membership(m, entries), today) for m in memberships]

    @staticmethod
    async def _upsert_attendance(db: AsyncSession, schedule: Schedule, status: ScheduleStatus, memo: str) -> None:
        result = await db.execute(select(Attendance).where(Attendance.schedule_id == schedule.id))
        attendance = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)
        if attendance is None:
            db.add(
                Attendance(
                    gym_id=schedule.gym_id,
                    schedule_id=schedule.id,
                    staff_id=schedule.staff_id,
                    member_id=schedule.member_id,
                    status_code=status.value,
                    attended_at=now,
                    memo=memo,
                )
            )
        else:
            attendance.status_code = status.value
            attendance.attended_at = now
            attendance.memo = memo

    @staticmethod
    async def apply_status_change(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        new_status: ScheduleStatus,
        staff: Staff,
    ) -> Schedule:
        """Change a schedule entry's status and move the credit ledger with it."""
        async with atomic(db):
            schedule = await db.get(Schedule, schedule_id)
            if schedule is None:
                raise NotFoundError("스케줄을 찾을 수 없습니다.")
            gym = await db.get(Gym, schedule.gym_id)
            if is_admin(staff.role):
                allowed = gym is not None and can_access_gym(staff, gym.id, gym.company_id)
            else:
                allowed = schedule.staff_id == staff.id
            if not allowed:
                raise ForbiddenError("권한이 없습니다.")

            old_status = _as_status(schedule.status)
            schedule.status = new_status
            was_deducting = old_status in CREDIT_DEDUCTING
            now_deducting = new_status in CREDIT_DEDUCTING

            if was_deducting and not now_deducting and schedule.membership_id:
                await MembershipStore.release_used_session(db, schedule.membership_id)
                logger.info("Released session credit: schedule=%s membership=%s", schedule.id, schedule.membership_id)
                schedule.membership_id = None

            if now_deducting:
                membership_info = "회원권 없음"
                if not was_deducting and schedule.member_id:
                    membership = await MembershipStore.find_consumable_membership(
                        db,
                        member_id=schedule.member_id,
                        gym_id=schedule.gym_id,
                        membership_type=schedule.type,
                    )
                    if membership is not None:
                        if await MembershipStore.add_used_session(db, membership.id):
                            schedule.membership_id = membership.id
                            membership_info = f"{membership.name} (1회 차감)"
                        else:
                            membership_info = f"{membership.name} (횟수 소진됨)"
                elif was_deducting and schedule.membership_id:
                    membership_info = "기존 차감 유지"

                label = "출석" if new_status == ScheduleStatus.COMPLETED else "노쇼(공제)"
                await SessionAccountingService._upsert_attendance(
                    db, schedule, new_status, f"[자동] {label} 처리 / {membership_info}"
                )
            await db.flush()
        return schedule

    @staticmethod
    async def reconcile_used_sessions(
        db: AsyncSession,
        membership: Membership,
        member: Member,
        staff: Staff,
    ) -> Membership:
        """Overwrite the stored ``used_sessions`` with the schedule-derived count."""
        async with atomic(db):
            entries = await SessionAccountingService.list_member_schedules(
                db, member.id, membership.membership_type or ""
            )
            entries = entries_for_membership(membership, entries)
            deducted = sum(1 for entry in entries if is_credit_deducting(entry.status))
            if membership.total_sessions is not None:
                deducted = min(deducted, membership.total_sessions)
            before = membership.used_sessions
            if deducted != before:
                membership.used_sessions = deducted
                await db.flush()
                await ActivityLogService.record(
                    db,
                    gym_id=membership.gym_id,
                    company_id=member.company_id,
                    member_id=member.id,
                    membership_id=membership.id,
                    action_type=ActivityAction.MEMBERSHIP_UPDATED,
                    description=f'회원권 "{membership.name}" 사용 횟수 보정: {before}회 → {deducted}회',
                    changes={"before": {"used_sessions": before}, "after": {"used_sessions": deducted}},
                    created_by=staff.id,
                )
        return membership
