from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.models.finance import Payment, SalesLog

logger = logging.getLogger(__name__)


def round_money(value: float | Decimal) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class PaymentService:
    @staticmethod
    async def record_payment(
        db: AsyncSession,
        *,
        gym_id: uuid.UUID,
        company_id: uuid.UUID,
        member_id: uuid.UUID,
        amount: float | Decimal,
        registration_type: str,
        method: str | None = None,
        membership_id: uuid.UUID | None = None,
        memo: str | None = None,
    ) -> Payment:
        """Record a payment. Part of the caller's transaction: a failure aborts it."""
        payment = Payment(
            gym_id=gym_id,
            company_id=company_id,
            member_id=member_id,
            membership_id=membership_id,
            registration_type=registration_type,
            amount=round_money(amount),
            method=method or settings.DEFAULT_PAYMENT_METHOD,
            memo=memo,
            paid_at=datetime.now(timezone.utc),
        )
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def record_sale(
        db: AsyncSession,
        *,
        gym_id: uuid.UUID,
        company_id: uuid.UUID,
        sales_type: str,
        amount: float | Decimal,
        method: str | None = None,
        member_id: uuid.UUID | None = None,
        staff_id: uuid.UUID | None = None,
        memo: str | None = None,
    ) -> SalesLog | None:
        """Append a sales-log row. Best effort: failures are logged and swallowed."""
        await db.flush()
        try:
            async with db.begin_nested():
                sale = SalesLog(
                    gym_id=gym_id,
                    company_id=company_id,
                    member_id=member_id,
                    sales_type=sales_type,
                    amount=round_money(amount),
                    method=method or settings.DEFAULT_PAYMENT_METHOD,
                    staff_id=staff_id,
                    memo=memo,
                )
                db.add(sale)
            return sale
        except Exception:
            logger.exception("Sales log write failed (gym=%s type=%s)", gym_id, sales_type)
            return None

    @staticmethod
    async def list_member_payments(db: AsyncSession, member_id: uuid.UUID) -> list[Payment]:
        stmt = select(Payment).where(Payment.member_id == member_id).order_by(Payment.paid_at.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def summarize_sales(
        db: AsyncSession,
        *,
        gym_id: uuid.UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict:
        filters = [SalesLog.gym_id == gym_id]
        if start_date:
            filters.append(SalesLog.created_at >= datetime(start_date.year, start_date.month, start_date.day, tzinfo=timezone.utc))
        if end_date:
            end_exclusive = datetime(end_date.year, end_date.month, end_date.day, tzinfo=timezone.utc) + timedelta(days=1)
            filters.append(SalesLog.created_at < end_exclusive)

        by_type_stmt = (
            select(SalesLog.sales_type, func.count(SalesLog.id), func.sum(SalesLog.amount))
            .where(*filters)
            .group_by(SalesLog.sales_type)
        )
        by_method_stmt = (
            select(SalesLog.method, func.sum(SalesLog.amount))
            .where(*filters)
            .group_by(SalesLog.method)
        )
        by_type_rows = (await db.execute(by_type_stmt)).all()
        by_method_rows = (await db.execute(by_method_stmt)).all()

        by_type = {
            sales_type: {"count": int(count), "amount": float(amount or 0)}
            for sales_type, count, amount in by_type_rows
        }
        by_method = {method: float(amount or 0) for method, amount in by_method_rows}
        return {
            "total_amount": float(sum(Decimal(str(v["amount"])) for v in by_type.values())),
            "total_count": sum(v["count"] for v in by_type.values()),
            "by_type": by_type,
            "by_method": by_method,
        }
