from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Iterable, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.enums import MemberStatus, MembershipStatus
from backoffice.models.member import Member, Membership
from backoffice.services.timezone_service import today_in_gym_tz

logger = logging.getLogger(__name__)


@dataclass
class MemberStatusState:
    status: MemberStatus
    active_membership: Membership | None
    total_memberships: int
    changed: bool


def _as_status(value: MemberStatus | str) -> MemberStatus:
    return value if isinstance(value, MemberStatus) else MemberStatus(value)


def resolve_active_membership(memberships: Sequence[Membership]) -> Membership | None:
    """First membership with status active, in creation order."""
    ordered = sorted(memberships, key=lambda m: m.created_at)
    for membership in ordered:
        if membership.status == MembershipStatus.ACTIVE:
            return membership
    return None


def has_valid_active_membership(memberships: Iterable[Membership], today: date) -> bool:
    return any(
        m.status == MembershipStatus.ACTIVE and (m.end_date is None or m.end_date >= today)
        for m in memberships
    )


def derive_status(member: Member, memberships: Sequence[Membership], today: date) -> MemberStatusState:
    current = _as_status(member.status)
    active = resolve_active_membership(memberships)

    # Holds are set by staff and are never overridden automatically.
    if current == MemberStatus.PAUSED:
        return MemberStatusState(current, active, len(memberships), changed=False)

    if not has_valid_active_membership(memberships, today):
        return MemberStatusState(
            MemberStatus.EXPIRED,
            active,
            len(memberships),
            changed=current != MemberStatus.EXPIRED,
        )
    return MemberStatusState(current, active, len(memberships), changed=False)


class MemberStatusService:
    @staticmethod
    async def sync_member_statuses(
        db: AsyncSession,
        members: Sequence[Member],
        memberships_by_member: dict,
        today: date | None = None,
    ) -> dict:
        """Persist derived ``expired`` statuses. Returns the derived state per member id."""
        today = today or today_in_gym_tz()
        states = {}
        expired_ids = []
        for member in members:
            state = derive_status(member, memberships_by_member.get(member.id, []), today)
            states[member.id] = state
            if state.changed:
                expired_ids.append(member.id)

        if expired_ids:
            await db.execute(
                update(Member)
                .where(Member.id.in_(expired_ids), Member.status != MemberStatus.PAUSED)
                .values(status=MemberStatus.EXPIRED)
                .execution_options(synchronize_session=False)
            )
            for member in members:
                if member.id in expired_ids:
                    member.status = MemberStatus.EXPIRED
            logger.info("Auto-expired %s member(s)", len(expired_ids))
        return states

    @staticmethod
    async def set_status(db: AsyncSession, member_id, status: MemberStatus) -> None:
        await db.execute(
            update(Member)
            .where(Member.id == member_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
