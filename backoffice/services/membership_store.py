"""Data access for members and their memberships.

Counter changes on ``member_memberships`` go through single conditional
UPDATE statements so the balance check and the write happen in one round trip;
two concurrent requests can never both spend the same remaining credit.
"""
from datetime import date, timedelta
import uuid

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.models.enums import MembershipStatus
from backoffice.models.member import Member, Membership


def calculate_end_date(start_date: date, sessions: int, days_per_session: int | None = None) -> date:
    """Estimate package expiry assuming one session per ``days_per_session`` days."""
    per_session = settings.DAYS_PER_SESSION if days_per_session is None else days_per_session
    return start_date + timedelta(days=sessions * per_session - 1)


class MembershipStore:
    @staticmethod
    async def get_member(db: AsyncSession, member_id: uuid.UUID) -> Member | None:
        return await db.get(Member, member_id)

    @staticmethod
    async def get_membership(
        db: AsyncSession,
        membership_id: uuid.UUID,
        member_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Membership | None:
        stmt = select(Membership).where(Membership.id == membership_id, Membership.member_id == member_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_memberships(db: AsyncSession, member_id: uuid.UUID) -> list[Membership]:
        stmt = select(Membership).where(Membership.member_id == member_id).order_by(Membership.created_at)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_memberships_for_members(
        db: AsyncSession,
        member_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, list[Membership]]:
        grouped: dict[uuid.UUID, list[Membership]] = {member_id: [] for member_id in member_ids}
        if not member_ids:
            return grouped
        stmt = select(Membership).where(Membership.member_id.in_(member_ids)).order_by(Membership.created_at)
        result = await db.execute(stmt)
        for membership in result.scalars().all():
            grouped[membership.member_id].append(membership)
        return grouped

    @staticmethod
    async def find_active_membership_of_type(
        db: AsyncSession,
        member_id: uuid.UUID,
        membership_type: str,
    ) -> Membership | None:
        """First active session-based membership of a type, by creation order."""
        stmt = (
            select(Membership)
            .where(
                Membership.member_id == member_id,
                func.upper(Membership.membership_type) == membership_type.upper(),
                Membership.status == MembershipStatus.ACTIVE,
                Membership.total_sessions.is_not(None),
            )
            .order_by(Membership.created_at)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def find_consumable_membership(
        db: AsyncSession,
        *,
        member_id: uuid.UUID,
        gym_id: uuid.UUID,
        membership_type: str,
    ) -> Membership | None:
        """Active membership a session should be charged to: soonest end date first."""
        stmt = (
            select(Membership)
            .where(
                Membership.member_id == member_id,
                Membership.gym_id == gym_id,
                func.upper(Membership.membership_type) == membership_type.upper(),
                Membership.status == MembershipStatus.ACTIVE,
            )
            .order_by(Membership.end_date.is_(None), Membership.end_date, Membership.created_at)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_active_memberships(db: AsyncSession, member_id: uuid.UUID) -> int:
        stmt = select(func.count(Membership.id)).where(
            Membership.member_id == member_id,
            Membership.status == MembershipStatus.ACTIVE,
        )
        result = await db.execute(stmt)
        return int(result.scalar() or 0)

    @staticmethod
    async def deduct_total_sessions(db: AsyncSession, membership_id: uuid.UUID, sessions: int) -> bool:
        """Shrink ``total_sessions`` by ``sessions`` if that many are still unused.

        The membership is marked finished in the same statement when nothing
        remains. Returns False when the row no longer qualifies.
        """
        remaining_after = Membership.total_sessions - sessions - Membership.used_sessions
        stmt = (
            update(Membership)
            .where(
                Membership.id == membership_id,
                Membership.status == MembershipStatus.ACTIVE,
                Membership.total_sessions.is_not(None),
                Membership.total_sessions - Membership.used_sessions >= sessions,
            )
            .values(
                total_sessions=Membership.total_sessions - sessions,
                status=case(
                    (remaining_after <= 0, MembershipStatus.FINISHED.value),
                    else_=MembershipStatus.ACTIVE.value,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def add_total_sessions(db: AsyncSession, membership_id: uuid.UUID, sessions: int, end_date: date | None) -> None:
        stmt = (
            update(Membership)
            .where(Membership.id == membership_id)
            .values(total_sessions=Membership.total_sessions + sessions, end_date=end_date)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)

    @staticmethod
    async def add_used_session(db: AsyncSession, membership_id: uuid.UUID) -> bool:
        """Consume one credit unless the package is already exhausted."""
        stmt = (
            update(Membership)
            .where(
                Membership.id == membership_id,
                (Membership.total_sessions.is_(None)) | (Membership.used_sessions < Membership.total_sessions),
            )
            .values(used_sessions=Membership.used_sessions + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def release_used_session(db: AsyncSession, membership_id: uuid.UUID) -> bool:
        stmt = (
            update(Membership)
            .where(Membership.id == membership_id, Membership.used_sessions > 0)
            .values(used_sessions=Membership.used_sessions - 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1
