import logging
from typing import Any
import uuid

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.audit import ActivityLog
from backoffice.models.enums import ActivityAction

logger = logging.getLogger(__name__)


class ActivityLogService:
    @staticmethod
    def _build_entry(
        *,
        gym_id: uuid.UUID,
        company_id: uuid.UUID | None,
        member_id: uuid.UUID,
        action_type: ActivityAction | str,
        description: str,
        changes: dict[str, Any] | None,
        membership_id: uuid.UUID | None,
        created_by: uuid.UUID | None,
    ) -> ActivityLog:
        action = action_type.value if isinstance(action_type, ActivityAction) else action_type
        return ActivityLog(
            gym_id=gym_id,
            company_id=company_id,
            member_id=member_id,
            membership_id=membership_id,
            action_type=action,
            description=description,
            changes=jsonable_encoder(changes) if changes is not None else None,
            created_by=created_by,
        )

    @staticmethod
    async def record(
        db: AsyncSession,
        *,
        gym_id: uuid.UUID,
        company_id: uuid.UUID | None,
        member_id: uuid.UUID,
        action_type: ActivityAction | str,
        description: str,
        changes: dict[str, Any] | None = None,
        membership_id: uuid.UUID | None = None,
        created_by: uuid.UUID | None = None,
    ) -> ActivityLog | None:
        """
        Append an entry to a member's activity timeline.

        The entry joins the caller's transaction under a SAVEPOINT: it commits
        together with the mutation it describes, but a failed insert only rolls
        back the savepoint and is logged. The primary mutation always proceeds.
        """
        # Flush the caller's pending work first so its errors are not mistaken for ours.
        await db.flush()
        try:
            async with db.begin_nested():
                entry = ActivityLogService._build_entry(
                    gym_id=gym_id,
                    company_id=company_id,
                    member_id=member_id,
                    action_type=action_type,
                    description=description,
                    changes=changes,
                    membership_id=membership_id,
                    created_by=created_by,
                )
                db.add(entry)
            return entry
        except Exception:
            logger.exception("Activity log write failed (member=%s action=%s)", member_id, action_type)
            return None

    @staticmethod
    async def list_for_member(
        db: AsyncSession,
        member_id: uuid.UUID,
        *,
        limit: int = 50,
    ) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.member_id == member_id)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
