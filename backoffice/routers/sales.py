from typing import Annotated, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import get_db
from backoffice.auth import dependencies
from backoffice.auth.dependencies import GymScope
from backoffice.core.exceptions import BadRequestError
from backoffice.core.responses import StandardResponse
from backoffice.services.payment_service import PaymentService

router = APIRouter()


@router.get("/summary", response_model=StandardResponse)
async def get_sales_summary(
    scope: Annotated[GymScope, Depends(dependencies.get_gym_scope)],
    db: Annotated[AsyncSession, Depends(get_db)],
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Sales totals for one gym, broken down by sales type and payment method."""
    if start_date and end_date and start_date > end_date:
        raise BadRequestError("시작일은 종료일보다 늦을 수 없습니다.")
    summary = await PaymentService.summarize_sales(
        db, gym_id=scope.gym_id, start_date=start_date, end_date=end_date
    )
    return StandardResponse(data=summary)
