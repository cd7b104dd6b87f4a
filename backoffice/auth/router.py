from typing import Annotated
from datetime import timedelta
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backoffice.config import settings
from backoffice.core.exceptions import UnauthorizedError
from backoffice.database import get_db
from backoffice.auth import schemas, security, dependencies
from backoffice.models.tenant import Staff
from backoffice.core.responses import StandardResponse

router = APIRouter()


async def _get_staff_by_email(db: AsyncSession, email: str) -> Staff | None:
    result = await db.execute(select(Staff).where(Staff.email == email))
    return result.scalar_one_or_none()


@router.post("/login", response_model=StandardResponse[schemas.Token])
async def login(
    login_data: schemas.LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    staff = await _get_staff_by_email(db, login_data.email)

    if not staff or not staff.is_active or not security.verify_password(login_data.password, staff.hashed_password):
        raise UnauthorizedError(
            "이메일 또는 비밀번호가 올바르지 않습니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = security.create_access_token(
        subject=staff.email,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return StandardResponse(
        data=schemas.Token(access_token=access_token, token_type="bearer"),
        message="Login Successful"
    )


@router.get("/me", response_model=StandardResponse[schemas.StaffResponse], status_code=status.HTTP_200_OK)
async def read_me(
    staff: Annotated[Staff, Depends(dependencies.authenticate_request)],
):
    return StandardResponse(data=schemas.StaffResponse.model_validate(staff))
